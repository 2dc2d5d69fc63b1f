# -*- coding: utf-8 -*-

"""The lookup query service.

Answers the questions lookup fields ask at read time: which sources exist,
which fields a source exposes, and which rows it offers (paged and
searchable). Sources are static catalogues, one form's records, or the
records of every form directly under a module.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from django.conf import settings
from django.db.models import Count, QuerySet
from typing_extensions import TypedDict

from modular_forms.exceptions import FormNotFoundError, SourceNotFoundError
from modular_forms.models import (
    FORM_SOURCE_PREFIX,
    MODULE_SOURCE_PREFIX,
    Field,
    Form,
    LookupFieldRelation,
    LookupSource,
    Module,
    Record,
    unwrap,
)
from modular_forms.static_sources import STATIC_SOURCES, StaticSource
from modular_forms.utils import jp

logger = logging.getLogger(__name__)

FieldDescriptor = TypedDict(
    "FieldDescriptor",
    {"key": str, "label": str, "type": str, "formId": str, "formName": str},
    total=False,
)
LookupRow = TypedDict(
    "LookupRow",
    {
        "id": str,
        "label": str,
        "value": str,
        "storeValue": Any,
        "description": Optional[str],
        "data": Dict[str, Any],
        "formId": str,
        "formName": str,
    },
    total=False,
)
LookupPage = TypedDict(
    "LookupPage",
    {"rows": List[LookupRow], "total": int, "limit": int, "offset": int},
)

##
# SYSTEM_FIELDS
#
# Fields every form and module source exposes regardless of its declared
# fields.
#
SYSTEM_FIELDS: List[FieldDescriptor] = [
    {"key": "id", "label": "ID", "type": "system"},
    {"key": "submittedAt", "label": "Submitted At", "type": "system"},
]

DEFAULT_DISPLAY_FIELD = "name"
DEFAULT_VALUE_FIELD = "id"


def default_page_size() -> int:
    return getattr(settings, "MODULAR_FORMS_DEFAULT_PAGE_SIZE", 50)


def max_page_size() -> int:
    return getattr(settings, "MODULAR_FORMS_MAX_PAGE_SIZE", 500)


class ResolvedSource(NamedTuple):
    """A source id resolved to what backs it."""

    source_id: str
    type: str
    static: Optional[StaticSource] = None
    form: Optional[Form] = None
    module: Optional[Module] = None


def resolve(source_id: str) -> ResolvedSource:
    """Resolve a source id for reading.

    Static catalogue keys are checked first, then the LookupSource table,
    then the "module_" and "form_" prefixes.

    Args:
        source_id: The source id.

    Returns:
        ResolvedSource: The source and its backing catalogue, form or module.

    Raises:
        SourceNotFoundError: If the id names no known source.
    """
    if source_id in STATIC_SOURCES:
        return ResolvedSource(source_id, "static", static=STATIC_SOURCES[source_id])

    lookup_source = (
        LookupSource.objects.select_related("source_form", "source_module")
        .filter(pk=source_id)
        .first()
    )
    if lookup_source is not None:
        if lookup_source.type == LookupSource.TYPE_FORM:
            return ResolvedSource(source_id, "form", form=lookup_source.source_form)
        if lookup_source.type == LookupSource.TYPE_MODULE:
            return ResolvedSource(
                source_id, "module", module=lookup_source.source_module
            )
        static = STATIC_SOURCES.get(source_id)
        if static is None:
            raise SourceNotFoundError(
                f"Static lookup source {source_id} has no built-in catalogue."
            )
        return ResolvedSource(source_id, "static", static=static)

    if source_id.startswith(MODULE_SOURCE_PREFIX):
        module_id = source_id[len(MODULE_SOURCE_PREFIX) :]
        module = Module.objects.filter(pk=module_id).first()
        if module is not None:
            return ResolvedSource(source_id, "module", module=module)
    elif source_id.startswith(FORM_SOURCE_PREFIX):
        form_id = source_id[len(FORM_SOURCE_PREFIX) :]
        form = Form.objects.filter(pk=form_id).first()
        if form is not None:
            return ResolvedSource(source_id, "form", form=form)

    raise SourceNotFoundError(f"Lookup source {source_id} does not exist.")


def get_sources() -> List[Dict[str, Any]]:
    """List every module, form and static catalogue as a lookup source.

    Returns:
        List[Dict[str, Any]]: Entries of `{id, name, type, description,
            recordCount}`. Form entries also carry their module.
    """
    sources: List[Dict[str, Any]] = []

    modules = Module.objects.annotate(
        form_count=Count("forms", distinct=True),
        record_count=Count("forms__records", distinct=True),
    )
    for module in modules:
        sources.append(
            {
                "id": module.lookup_source_id,
                "name": module.name,
                "type": "module",
                "description": (
                    module.description or f"Module with {module.form_count} forms"
                ),
                "recordCount": module.record_count,
            }
        )

    forms = Form.objects.select_related("module").annotate(
        record_count=Count("records", distinct=True)
    )
    for form in forms:
        sources.append(
            {
                "id": form.lookup_source_id,
                "name": f"{form.name} ({form.module.name})",
                "type": "form",
                "description": (
                    f"Records from {form.name} form in {form.module.name} module"
                ),
                "recordCount": form.record_count,
                "moduleId": form.module_id,
            }
        )

    for static in STATIC_SOURCES.values():
        sources.append(
            {
                "id": static.id,
                "name": static.name,
                "type": "static",
                "description": static.description,
                "recordCount": static.record_count,
            }
        )

    return sources


def get_form_sources(form_id: str) -> List[Dict[str, Any]]:
    """List the distinct sources referenced by the lookup fields of a form.

    Args:
        form_id: The id of the referencing form.

    Returns:
        List[Dict[str, Any]]: One entry per source, with the ids of the
            fields that reference it and a breadcrumb for display.

    Raises:
        FormNotFoundError: If the form does not exist.
    """
    if not Form.objects.filter(pk=form_id).exists():
        raise FormNotFoundError(form_id)

    relations = (
        LookupFieldRelation.objects.filter(form_id=form_id)
        .select_related(
            "lookup_source",
            "lookup_source__source_form__module",
            "lookup_source__source_module",
        )
        .order_by("lookup_source__name", "field__order")
    )

    sources: Dict[str, Dict[str, Any]] = {}
    for relation in relations:
        lookup_source = relation.lookup_source
        entry = sources.get(lookup_source.pk)
        if entry is None:
            entry = sources[lookup_source.pk] = _describe_source(lookup_source)
        entry["fieldIds"].append(relation.field_id)

    return list(sources.values())


def _describe_source(lookup_source: LookupSource) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "id": lookup_source.pk,
        "name": lookup_source.name,
        "type": lookup_source.type,
        "description": lookup_source.description,
        "active": lookup_source.active,
        "breadcrumb": lookup_source.name,
        "fieldIds": [],
    }

    if lookup_source.source_form_id:
        form = lookup_source.source_form
        entry.update(
            {
                "formId": form.pk,
                "moduleId": form.module_id,
                "moduleName": form.module.name,
                "breadcrumb": f"{form.module.name} > {form.name}",
                "recordCount": form.records.count(),
            }
        )
    elif lookup_source.source_module_id:
        module = lookup_source.source_module
        entry.update(
            {
                "moduleId": module.pk,
                "moduleName": module.name,
                "recordCount": Record.objects.filter(form__module=module).count(),
            }
        )
    else:
        static = STATIC_SOURCES.get(lookup_source.pk)
        entry["recordCount"] = static.record_count if static else 0

    return entry


def get_linked_forms(form_id: str) -> List[Dict[str, Any]]:
    """List the other forms whose lookup fields point at a form.

    Args:
        form_id: The id of the referenced form.

    Returns:
        List[Dict[str, Any]]: One entry per referencing form, ordered by
            module and form name, with its record and field counts and the
            number of its lookup fields that point at the form.

    Raises:
        FormNotFoundError: If the form does not exist.
    """
    if not Form.objects.filter(pk=form_id).exists():
        raise FormNotFoundError(form_id)

    references = (
        LookupFieldRelation.objects.filter(lookup_source__source_form_id=form_id)
        .exclude(form_id=form_id)
        .values("form_id")
        .annotate(lookup_fields=Count("field", distinct=True))
        .order_by()
    )
    lookup_counts = {row["form_id"]: row["lookup_fields"] for row in references}

    forms = (
        Form.objects.filter(pk__in=lookup_counts)
        .select_related("module")
        .annotate(
            record_count=Count("records", distinct=True),
            section_field_count=Count("sections__fields", distinct=True),
            subform_field_count=Count("sections__subforms__fields", distinct=True),
        )
        .order_by("module__name", "name")
    )

    return [
        {
            "id": form.pk,
            "name": form.name,
            "description": form.description,
            "moduleId": form.module_id,
            "moduleName": form.module.name,
            "breadcrumb": f"{form.module.name} > {form.name}",
            "recordCount": form.record_count,
            "fieldCount": form.section_field_count + form.subform_field_count,
            "lookupFieldsCount": lookup_counts[form.pk],
            "isPublished": form.is_published,
            "createdAt": form.created_at,
            "updatedAt": form.updated_at,
        }
        for form in forms
    ]


def _form_field_descriptors(
    form: Form, fields: Optional[Iterable[Field]] = None, tag: bool = False
) -> List[FieldDescriptor]:
    descriptors: List[FieldDescriptor] = []
    for field in form.all_fields() if fields is None else fields:
        descriptor: FieldDescriptor = {
            "key": field.pk,
            "label": field.label,
            "type": field.type,
        }
        if tag:
            descriptor["formId"] = form.pk
            descriptor["formName"] = form.name
        descriptors.append(descriptor)
    return descriptors


def get_fields(source_id: str) -> List[FieldDescriptor]:
    """Return the fields a lookup source exposes.

    Form and module sources list the system fields first, then the
    declared fields (for modules, those of every form directly under the
    module, tagged with their form). Static sources list their columns.

    Args:
        source_id: The source id.

    Returns:
        List[FieldDescriptor]: The field descriptors.

    Raises:
        SourceNotFoundError: If the source does not exist.
    """
    source = resolve(source_id)

    if source.static is not None:
        return [
            {"key": column, "label": column.replace("_", " ").title(), "type": "text"}
            for column in source.static.columns
        ]

    descriptors = list(SYSTEM_FIELDS)
    if source.form is not None:
        descriptors.extend(_form_field_descriptors(source.form))
    elif source.module is not None:
        for form in source.module.forms.order_by("name", "pk"):
            descriptors.extend(_form_field_descriptors(form, tag=True))

    return descriptors


def _clean(value: Any) -> Any:
    """Flatten an extracted value into something displayable."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def _match_key(data: Dict[str, Any], key: str) -> Tuple[bool, Any]:
    if key in data:
        return True, data[key]
    lowered = key.lower()
    for candidate, value in data.items():
        if str(candidate).lower() == lowered:
            return True, value
    return False, None


def extract_value(
    data: Dict[str, Any],
    path: Optional[str],
    system: Optional[Dict[str, Any]] = None,
) -> Any:
    """Extract a value from record data (or a static row) by path.

    The first segment of the path is matched against the system values,
    then by exact key, then case-insensitively by key, then by the label
    of an enriched entry. The rest of the path is a JMESPath expression
    applied to the matched value. Enriched entries are unwrapped to their
    value.

    Args:
        data: The record data or static row.
        path: A dotted path, e.g. "customer.name".
        system: System values of the record (id, submittedAt).

    Returns:
        Any: The extracted value, cleaned for display, or None.
    """
    if not data or not path:
        return None

    head, _, rest = path.partition(".")

    found, value = _match_key(system or {}, head)
    if not found:
        found, value = _match_key(data, head)
    if not found:
        lowered = head.lower()
        for entry in data.values():
            label = entry.get("label") if isinstance(entry, dict) else None
            if label is not None and str(label).lower() == lowered:
                found, value = True, entry
                break
    if not found:
        return None

    value = unwrap(value)
    if rest:
        value = jp(rest, value) if isinstance(value, (dict, list)) else None

    return _clean(value)


def _matches(row: LookupRow, needle: str) -> bool:
    haystack = [row.get("label"), row.get("description")]
    haystack.extend(unwrap(v) for v in row.get("data", {}).values())
    return any(needle in str(value).lower() for value in haystack if value is not None)


def _static_row(
    row: Dict[str, Any],
    display_field: str,
    value_field: str,
    store_field: Optional[str],
    description_field: Optional[str],
) -> LookupRow:
    value = extract_value(row, value_field) or row["id"]
    label = extract_value(row, display_field) or row["name"]
    return {
        "id": str(value),
        "label": str(label),
        "value": str(value),
        "storeValue": extract_value(row, store_field or display_field) or label,
        "description": (
            extract_value(row, description_field) if description_field else None
        ),
        "data": row,
    }


def _record_row(
    record: Record,
    display_field: str,
    value_field: str,
    store_field: Optional[str],
    description_field: Optional[str],
    tag: bool = False,
) -> LookupRow:
    data = record.record_data if isinstance(record.record_data, dict) else {}
    system = {"id": record.pk, "submittedAt": record.submitted_at.isoformat()}

    label = extract_value(data, display_field, system)
    value = extract_value(data, value_field, system) or record.pk
    description = (
        extract_value(data, description_field, system) if description_field else None
    )

    row: LookupRow = {
        "id": record.pk,
        "label": str(label) if label not in (None, "") else f"Record {record.pk[-8:]}",
        "value": str(value),
        "storeValue": (
            extract_value(data, store_field, system) if store_field else label
        ),
        "description": description or f"From {record.form.name}",
        "data": data,
    }
    if tag:
        row["formId"] = record.form_id
        row["formName"] = record.form.name
    return row


def _relation_defaults(source_id: str, field_id: Optional[str]) -> Dict[str, Any]:
    if not field_id:
        return {}
    relation = (
        LookupFieldRelation.objects.filter(
            lookup_source_id=source_id, field_id=field_id
        )
        .values("display_field", "value_field")
        .first()
    )
    return relation or {}


def get_data(
    source_id: str,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    display_field: Optional[str] = None,
    value_field: Optional[str] = None,
    field_id: Optional[str] = None,
    store_field: Optional[str] = None,
    description_field: Optional[str] = None,
) -> LookupPage:
    """Return a page of rows from a lookup source.

    Args:
        source_id: The source id.
        search: A case-insensitive substring matched against each row's
            label, description and raw data values.
        limit: The page size. Defaults to MODULAR_FORMS_DEFAULT_PAGE_SIZE
            and is capped at MODULAR_FORMS_MAX_PAGE_SIZE.
        offset: The number of matching rows to skip.
        display_field: The path of the value shown as the row label.
        value_field: The path of the value stored when the row is picked.
        field_id: A lookup field whose relation to this source supplies the
            default display and value paths.
        store_field: The path of the value stored alongside the label.
        description_field: The path of the row description.

    Returns:
        LookupPage: The rows of the page and the total number of matches.

    Raises:
        SourceNotFoundError: If the source does not exist.
    """
    source = resolve(source_id)

    limit = max(1, min(limit or default_page_size(), max_page_size()))
    offset = max(0, offset or 0)

    defaults = _relation_defaults(source.source_id, field_id)
    display_field = (
        display_field or defaults.get("display_field") or DEFAULT_DISPLAY_FIELD
    )
    value_field = value_field or defaults.get("value_field") or DEFAULT_VALUE_FIELD
    needle = (search or "").strip().lower()

    if source.static is not None:
        rows = [
            _static_row(row, display_field, value_field, store_field, description_field)
            for row in source.static.rows
        ]
        if needle:
            rows = [row for row in rows if _matches(row, needle)]
        return {
            "rows": rows[offset : offset + limit],
            "total": len(rows),
            "limit": limit,
            "offset": offset,
        }

    tag = source.module is not None
    records: QuerySet[Record] = Record.objects.select_related("form").order_by(
        "-submitted_at", "pk"
    )
    if source.module is not None:
        records = records.filter(form__module=source.module)
    else:
        records = records.filter(form=source.form)

    def to_row(record: Record) -> LookupRow:
        return _record_row(
            record, display_field, value_field, store_field, description_field, tag
        )

    if needle:
        matches = [row for row in map(to_row, records) if _matches(row, needle)]
        total = len(matches)
        page = matches[offset : offset + limit]
    else:
        total = records.count()
        page = [to_row(record) for record in records[offset : offset + limit]]

    logger.debug(
        f"Served {len(page)} of {total} rows from lookup source {source.source_id}."
    )

    return {"rows": page, "total": total, "limit": limit, "offset": offset}
