# -*- coding: utf-8 -*-

"""JSON views for lookup sources, form submissions and field writes."""

import json
import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from modular_forms import query
from modular_forms.exceptions import SourceNotFoundError, SubmissionError
from modular_forms.fields import FIELD_TYPES
from modular_forms.forms import (
    FieldForm,
    LookupDataQueryForm,
    LookupFieldsQueryForm,
    field_update_form,
)
from modular_forms.models import Field
from modular_forms.serializers import field_to_json, payload_to_attributes
from modular_forms.services import create_field, delete_field, update_field
from modular_forms.submissions import submit_record

logger = logging.getLogger(__name__)

View = Callable[..., JsonResponse]


class BadRequest(Exception):
    """The request body or parameters could not be used."""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.errors = errors or {}


def _success(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"success": True, "data": data}, status=status)


def _failure(error: str, status: int, **extra: Any) -> JsonResponse:
    return JsonResponse({"success": False, "error": error, **extra}, status=status)


def json_view(view: View) -> View:
    """Turn the exceptions raised by a view into JSON error responses.

    Submission errors carry their own status and body. Missing sources and
    objects become 404s, invalid input becomes a 400, and anything else is
    logged and reported as a 500.
    """

    @wraps(view)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        try:
            return view(request, *args, **kwargs)
        except SubmissionError as e:
            return JsonResponse(e.as_dict(), status=e.status_code)
        except (SourceNotFoundError, ObjectDoesNotExist) as e:
            return _failure(str(e), 404)
        except BadRequest as e:
            return _failure(str(e), 400, errors=e.errors)
        except ValidationError as e:
            return _failure("Invalid data.", 400, errors=e.message_dict)
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}.")
            return _failure("Internal server error.", 500)

    return wrapper


def _json_body(request: HttpRequest) -> Dict[str, Any]:
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        raise BadRequest("The request body must be valid JSON.")
    if not isinstance(body, dict):
        raise BadRequest("The request body must be a JSON object.")
    return body


def _submitter(request: HttpRequest) -> Optional[str]:
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    return None


@require_GET
@json_view
def lookup_sources(request: HttpRequest) -> JsonResponse:
    """List every lookup source."""
    return _success(query.get_sources())


@require_GET
@json_view
def lookup_fields(request: HttpRequest) -> JsonResponse:
    """List the fields of the lookup source named by `sourceId`."""
    form = LookupFieldsQueryForm(request.GET)
    if not form.is_valid():
        raise BadRequest("Invalid query parameters.", form.errors.get_json_data())
    return _success(query.get_fields(form.cleaned_data["sourceId"]))


@require_GET
@json_view
def lookup_data(request: HttpRequest) -> JsonResponse:
    """Return a page of rows from the lookup source named by `sourceId`.

    Args:
        request: The current HTTP request. Accepts the `sourceId`, `search`,
            `limit`, `offset`, `displayField`, `valueField`, `storeField`,
            `descriptionField` and `fieldId` query parameters.

    Returns:
        JsonResponse: `{rows, total, limit, offset}` under "data".
    """
    form = LookupDataQueryForm(request.GET)
    if not form.is_valid():
        raise BadRequest("Invalid query parameters.", form.errors.get_json_data())
    return _success(query.get_data(**form.query_kwargs()))


@require_GET
@json_view
def form_lookup_sources(request: HttpRequest, form_id: str) -> JsonResponse:
    """List the sources referenced by the lookup fields of a form."""
    return _success(query.get_form_sources(form_id))


@require_GET
@json_view
def form_linked_records(request: HttpRequest, form_id: str) -> JsonResponse:
    """List the forms whose lookup fields point at a form."""
    return _success(query.get_linked_forms(form_id))


@csrf_exempt
@require_http_methods(["POST"])
@json_view
def submit_form(request: HttpRequest, form_id: str) -> JsonResponse:
    """Submit a record to a form.

    Args:
        request: The current HTTP request, with a JSON body of the shape
            `{"recordData": {<fieldId>: <value>, ...}}`.
        form_id: The id of the form being submitted.

    Returns:
        JsonResponse: The new record id with status 201, or the reason the
            submission was rejected.
    """
    body = _json_body(request)
    record = submit_record(
        form_id, body.get("recordData"), submitted_by=_submitter(request)
    )
    return _success({"recordId": record.pk}, status=201)


@csrf_exempt
@require_http_methods(["POST"])
@json_view
def fields(request: HttpRequest) -> JsonResponse:
    """Create a field."""
    attrs = payload_to_attributes(_json_body(request))
    form = FieldForm(data=attrs)
    if not form.is_valid():
        raise BadRequest("Invalid field.", form.errors.get_json_data())

    field = create_field(**form.field_attributes())
    return _success(field_to_json(field), status=201)


@csrf_exempt
@require_http_methods(["PATCH", "DELETE"])
@json_view
def field_detail(request: HttpRequest, field_id: str) -> JsonResponse:
    """Update or delete a field."""
    if request.method == "DELETE":
        delete_field(field_id)
        return _success({"id": field_id})

    field = Field.objects.get(pk=field_id)
    changes = payload_to_attributes(_json_body(request))
    changes.pop("id", None)

    form = field_update_form(changes)(data=changes, instance=field)
    if not form.is_valid():
        raise BadRequest("Invalid field.", form.errors.get_json_data())

    field = update_field(field_id, **form.field_attributes())
    return _success(field_to_json(field))


@require_GET
@json_view
def field_types(request: HttpRequest) -> JsonResponse:
    """List the field types of the builder palette."""
    return _success(
        [field_type.as_json() for _, field_type in sorted(FIELD_TYPES.items())]
    )
