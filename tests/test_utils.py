# -*- coding: utf-8 -*-

"""Tests for common utilities."""

import string
from typing import Any, Dict

import pytest
from hypothesis import given
from hypothesis import strategies as st

from modular_forms.utils import (
    blank,
    empty,
    evaluate_expression,
    fingerprint,
    generate_id,
    jp,
    stable_json,
)

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(),
    lambda children: st.lists(children, max_size=3)
    | st.dictionaries(st.text(max_size=5), children, max_size=3),
    max_leaves=10,
)


def test_generate_id() -> None:
    """Ensure that generated ids are 25 lowercase characters starting with "c"."""
    ids = {generate_id() for _ in range(500)}

    assert len(ids) == 500
    for generated in ids:
        assert len(generated) == 25
        assert generated.startswith("c")
        assert set(generated) <= set(string.ascii_lowercase + string.digits)


@pytest.mark.parametrize(
    "value,is_blank",
    [
        (None, True),
        ("", True),
        (" ", False),
        (0, False),
        (False, False),
        ([], False),
        ("Alice", False),
    ],
)
def test_blank(value: Any, is_blank: bool) -> None:
    """Ensure that only None and the empty string count as blank submissions."""
    assert blank(value) is is_blank


def test_empty() -> None:
    """Ensure that empty iterables and None are empty."""
    assert empty(None)
    assert empty([])
    assert empty("")
    assert not empty([0])
    assert not empty(0)


@given(st.dictionaries(st.text(max_size=10), json_values, max_size=8))
def test_fingerprint_ignores_key_order(data: Dict[str, Any]) -> None:
    """Ensure that payloads differing only in key order share a fingerprint."""
    reordered = dict(reversed(list(data.items())))

    assert fingerprint(reordered) == fingerprint(data)
    assert stable_json(reordered) == stable_json(data)
    assert len(fingerprint(data)) == 64


def test_fingerprint_distinguishes_values() -> None:
    """Ensure that different values produce different fingerprints."""
    assert fingerprint({"fld_1": "Alice"}) != fingerprint({"fld_1": "Alice "})
    assert fingerprint({"fld_1": "1"}) != fingerprint({"fld_1": 1})


def test_evaluate_expression() -> None:
    """Ensure that formula expressions are evaluated with the given names."""
    assert evaluate_expression("quantity * price", {"quantity": 3, "price": 2}) == 6
    assert evaluate_expression("round(total / 3, 2)", {"total": 10}) == 3.33
    assert evaluate_expression("empty(notes)", {"notes": []}) is True


def test_jp() -> None:
    """Ensure that JMESPath queries fall back to the default."""
    data = {"customer": {"name": "Alice", "tags": ["a", "b"]}}

    assert jp("customer.name", data) == "Alice"
    assert jp("customer.tags[1]", data) == "b"
    assert jp("customer.email", data, "n/a") == "n/a"
