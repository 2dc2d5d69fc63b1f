# -*- coding: utf-8 -*-

"""Helpers shared by the submission pipeline and the lookup query service."""

import hashlib
import json
import uuid
from typing import Any, Mapping, Optional, Union

import jmespath
from simpleeval import DEFAULT_FUNCTIONS, DEFAULT_OPERATORS, EvalWithCompoundTypes

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_id() -> str:
    """Generate a new primary key.

    Keys are 25 characters long: a "c" followed by 24 base36 digits drawn
    from a random UUID.

    Returns:
        str: A new, random primary key.
    """
    number = uuid.uuid4().int
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "c" + "".join(reversed(digits)).rjust(24, "0")[-24:]


def empty(value: Any) -> bool:
    """Return True for None and for collections (or strings) with no items.

    Exposed to formulas, e.g. `0 if empty(notes) else 1`.
    """
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) == 0
    return False


def blank(value: Any) -> bool:
    """Return True if a submitted value carries no information.

    Only None and the empty string count as blank; False, 0 and empty
    collections are deliberate answers.

    Args:
        value: The submitted value.

    Returns:
        bool: True if the value is None or "".
    """
    return value is None or value == ""


class FormulaEvaluator(EvalWithCompoundTypes):
    """Evaluates formula fields with a fixed set of operators and functions."""

    OPERATORS = dict(DEFAULT_OPERATORS)

    FUNCTIONS = {
        **DEFAULT_FUNCTIONS,
        "empty": empty,
        "round": round,
        "min": min,
        "max": max,
        "sum": sum,
        "abs": abs,
    }

    def __init__(self, names: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(
            operators=self.OPERATORS,
            functions=self.FUNCTIONS,
            names=dict(names or {}),
        )


def evaluate_expression(
    expression: str, names: Optional[Mapping[str, Any]] = None
) -> Any:
    """Evaluate a formula against the given names.

    Args:
        expression: The formula, e.g. "quantity * price".
        names: The values the formula may refer to.

    Returns:
        Any: The result of the formula.

    Raises:
        simpleeval.InvalidExpression: If the formula refers to unknown names
            or functions, or uses disallowed syntax.
    """
    return FormulaEvaluator(names).eval(expression)


def stable_json(data: Union[dict, list, None]) -> str:
    """Serialize data to compact JSON with sorted keys.

    Equal data always produces the same string, whatever its key order.
    Values JSON can't represent are serialized with `str`.
    """
    return json.dumps(
        data, sort_keys=True, ensure_ascii=True, separators=(",", ":"), default=str
    )


def fingerprint(data: Union[dict, list, None]) -> str:
    """Return the SHA-256 hex digest of the stable JSON form of the data.

    Two payloads that differ only in key order or JSON whitespace share a
    fingerprint.

    Args:
        data: The dict or list to fingerprint.

    Returns:
        str: A 64-character hex digest.
    """
    return hashlib.sha256(stable_json(data).encode("utf-8")).hexdigest()


def jp(expr: str, data: Any, default: Any = None) -> Any:
    """Search data with a JMESPath expression, falling back to a default."""
    found = jmespath.search(expr, data)
    return default if found is None else found
