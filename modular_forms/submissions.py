# -*- coding: utf-8 -*-

"""Form submission handling.

`submit_record` validates a submitted payload against the form it targets,
rejects exact duplicates, snapshots each field's metadata onto the values
it stores, computes formula fields, refreshes the lookup relations of the
form, and persists the record.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from modular_forms.exceptions import (
    DuplicateSubmissionError,
    EmptyPayloadError,
    FormNotFoundError,
    SubmissionError,
    UnknownFieldError,
)
from modular_forms.fields import FormulaField
from modular_forms.lookups import upsert_relation
from modular_forms.models import Field, Form, Record, unwrap
from modular_forms.signals import record_submitted
from modular_forms.utils import blank, evaluate_expression, fingerprint

logger = logging.getLogger(__name__)


def _anonymous_submitter() -> str:
    return getattr(settings, "MODULAR_FORMS_ANONYMOUS_SUBMITTER", "anonymous")


def check_payload(record_data: Any) -> None:
    """Reject payloads that are not mappings or carry no usable value.

    Args:
        record_data: The submitted record data.

    Raises:
        SubmissionError: If the record data is not a mapping.
        EmptyPayloadError: If the mapping is empty, or every value is None
            or the empty string.
    """
    if not isinstance(record_data, Mapping):
        raise SubmissionError("Record data is required and must be an object.")

    if not record_data or all(blank(v) for v in record_data.values()):
        raise EmptyPayloadError()


def enrich_value(field: Field, value: Any) -> Dict[str, Any]:
    """Wrap a submitted value with a snapshot of its field's metadata.

    Args:
        field: The field the value was submitted for.
        value: The submitted value.

    Returns:
        Dict[str, Any]: The enriched entry stored in `Record.record_data`.
    """
    section = field.owning_section
    return {
        "value": value,
        "label": field.label,
        "type": field.type,
        "typeLabel": field.type_label,
        "sectionId": section.pk if section else None,
        "section": section.title if section else None,
        "subformId": field.subform_id,
        "description": field.description,
        "placeholder": field.placeholder,
        "options": field.options,
        "validation": field.validation,
    }


def compute_formulas(
    fields: List[Field], record_data: Dict[str, Dict[str, Any]]
) -> Dict[str, Dict[str, Any]]:
    """Evaluate the formula fields of a form against the submitted values.

    Each formula can refer to other values by field id or by the field's
    slugified label. Formulas are evaluated in field order, so a formula
    can use the result of one declared before it. A formula that fails to
    evaluate yields None.

    Args:
        fields: The fields of the form, in order.
        record_data: The enriched record data.

    Returns:
        Dict[str, Dict[str, Any]]: Enriched entries for each formula field,
            keyed by field id and marked as computed.
    """
    names: Dict[str, Any] = {}
    for field in fields:
        if field.pk in record_data:
            value = unwrap(record_data[field.pk])
            names[field.pk] = value
            names.setdefault(field.slug, value)

    computed: Dict[str, Dict[str, Any]] = {}
    for field in fields:
        if field.type != FormulaField.name or not field.formula:
            continue

        try:
            value = evaluate_expression(field.formula, names=names)
        except Exception as e:
            logger.warning(
                f"The formula for field {field.pk} ({field.formula!r}) could not "
                f"be evaluated: {e.__class__.__name__}: {e}"
            )
            value = None

        names[field.pk] = value
        names[field.slug] = value
        computed[field.pk] = {**enrich_value(field, value), "computed": True}

    return computed


def submit_record(
    form_id: str,
    record_data: Any,
    submitted_by: Optional[str] = None,
) -> Record:
    """Validate, enrich and persist a form submission.

    Args:
        form_id: The id of the form being submitted.
        record_data: A mapping of field ids to submitted values.
        submitted_by: Who submitted the form. Defaults to the anonymous
            submitter name.

    Returns:
        Record: The newly-created record.

    Raises:
        EmptyPayloadError: If no value was submitted.
        FormNotFoundError: If the form does not exist.
        UnknownFieldError: If any submitted key is not a field of the form.
        DuplicateSubmissionError: If an identical payload was already
            recorded for the form.
    """
    check_payload(record_data)

    try:
        form = Form.objects.get(pk=form_id)
    except Form.DoesNotExist:
        raise FormNotFoundError(form_id)

    fields = form.all_fields()
    fields_by_id = {field.pk: field for field in fields}

    unknown = [key for key in record_data if key not in fields_by_id]
    if unknown:
        raise UnknownFieldError(unknown)

    digest = fingerprint(dict(record_data))
    existing_id = (
        Record.objects.filter(form=form, fingerprint=digest)
        .values_list("pk", flat=True)
        .first()
    )
    if existing_id:
        raise DuplicateSubmissionError(existing_id)

    enriched = {
        key: enrich_value(fields_by_id[key], value)
        for key, value in record_data.items()
    }
    enriched.update(compute_formulas(fields, enriched))

    for field in fields:
        if field.source_module or field.source_form:
            upsert_relation(field)

    try:
        with transaction.atomic():
            record = Record.objects.create(
                form=form,
                record_data=enriched,
                fingerprint=digest,
                submitted_by=submitted_by or _anonymous_submitter(),
            )
    except IntegrityError:
        existing_id = (
            Record.objects.filter(form=form, fingerprint=digest)
            .values_list("pk", flat=True)
            .first()
        )
        if not existing_id:
            raise
        raise DuplicateSubmissionError(existing_id)

    logger.info(f"Recorded submission {record.pk} for form {form.pk}.")
    record_submitted.send(sender=Record, record=record)

    return record
