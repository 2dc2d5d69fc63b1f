# -*- coding: utf-8 -*-

"""Exceptions raised by modular_forms.

There are two families. LookupResolutionError and its subclasses describe
why lookup-relation bookkeeping for a field could not be completed; they
are caught and logged by the relation upsert engine and never reach the
caller that wrote the field. SubmissionError and its subclasses reject a
form submission and are surfaced to the client with enough detail to fix
the request.
"""

from typing import Any, Dict, Iterable, List


class LookupResolutionError(Exception):
    """Base class for lookup-relation bookkeeping failures."""


class MissingSourceError(LookupResolutionError):
    """A lookup field declares no usable source."""


class ReservedSourceIdError(MissingSourceError):
    """An explicit source id uses a reserved prefix for a different source."""


class SourceNotFoundError(LookupResolutionError, LookupError):
    """The module, form or lookup source a field points at does not exist."""


class AncestryNotFoundError(LookupResolutionError):
    """The owning form and module of a field could not be determined."""


class SubmissionError(Exception):
    """Base class for rejected form submissions."""

    status_code = 400
    code = "invalid_submission"

    def as_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly description of the error."""
        return {"success": False, "code": self.code, "error": str(self)}


class EmptyPayloadError(SubmissionError):
    """The submission contained no usable values."""

    code = "empty_payload"

    def __init__(
        self, message: str = "Please fill out at least one field before submitting."
    ) -> None:
        super().__init__(message)


class UnknownFieldError(SubmissionError):
    """The submission referenced fields that are not part of the form."""

    code = "unknown_fields"

    field_ids: List[str]

    def __init__(self, field_ids: Iterable[str]) -> None:
        self.field_ids = list(field_ids)
        super().__init__(
            f"The submission references fields that do not belong to the form: "
            f"{', '.join(self.field_ids)}."
        )

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "fieldIds": self.field_ids}


class DuplicateSubmissionError(SubmissionError):
    """An identical submission has already been recorded for the form."""

    status_code = 409
    code = "duplicate_submission"

    record_id: str

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(
            f"An identical submission already exists (record {record_id})."
        )

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "recordId": self.record_id}


class FormNotFoundError(SubmissionError, LookupError):
    """The form being submitted to does not exist."""

    status_code = 404
    code = "form_not_found"

    def __init__(self, form_id: str) -> None:
        self.form_id = form_id
        super().__init__(f"Form {form_id} does not exist.")
