# -*- coding: utf-8 -*-

"""Lookup-field relation resolution.

Keeps the lookup source and lookup field relation tables in step with the
lookup fields declared in forms. Three pieces cooperate:

* The source identity resolver turns a field's source declaration (an
  explicit `lookup["sourceId"]`, or the legacy `source_module` /
  `source_form` pointers) into one canonical source id, and makes sure a
  LookupSource row exists for it.
* The ancestry resolver finds the form and module that own a field.
* The relation upsert engine combines the two with the field's projection
  configuration and writes exactly one LookupFieldRelation per
  (source, field) pair.

Relation bookkeeping is best-effort: `upsert_relation` logs resolution
failures and returns None instead of raising, so that it never blocks the
field write or submission that triggered it.
"""

import logging
import re
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

from django.db import DatabaseError, models, transaction
from django.utils import timezone

from modular_forms.exceptions import (
    AncestryNotFoundError,
    LookupResolutionError,
    MissingSourceError,
    ReservedSourceIdError,
    SourceNotFoundError,
)
from modular_forms.fields import LookupField
from modular_forms.models import (
    FORM_SOURCE_PREFIX,
    MODULE_SOURCE_PREFIX,
    Field,
    Form,
    LookupFieldRelation,
    LookupSource,
    Module,
    Section,
    Subform,
)
from modular_forms.signals import lookup_relation_saved
from modular_forms.static_sources import get_static_source

logger = logging.getLogger(__name__)

##
# RESERVED_SOURCE_ID
#
# Source ids with these prefixes are derived from modules and forms. An
# explicit source id in this namespace selects the backing entity.
#
RESERVED_SOURCE_ID = re.compile(r"^(module_|form_)")

##
# LOOKUP_ATTRIBUTES
#
# The Field attributes that relation bookkeeping reads. Partial payloads
# are completed from the persisted Field for any of these that are absent.
#
LOOKUP_ATTRIBUTES = (
    "section_id",
    "subform_id",
    "lookup",
    "source_module",
    "source_form",
    "display_field",
    "value_field",
    "multiple",
    "searchable",
    "filters",
)

FieldLike = Union[Field, Mapping[str, Any]]


class SourceDeclaration(NamedTuple):
    """A field's lookup source declaration, resolved to one canonical form.

    `kind` is "module", "form" or "explicit". For module and form sources,
    `target_id` is the id of the backing Module or Form.
    """

    kind: str
    source_id: str
    target_id: Optional[str] = None


class Ancestry(NamedTuple):
    form_id: str
    module_id: str


def field_payload(field: FieldLike) -> Dict[str, Any]:
    """Normalize a Field instance or a (partial) field mapping.

    Model instances yield every lookup attribute. Mappings yield only the
    keys they carry, so that callers can tell "absent" from "set to None".
    `section` and `subform` entries (instances or ids) are accepted in
    place of `section_id` and `subform_id`.

    Args:
        field: A Field instance, or a mapping of field attributes that
            includes at least "id" and "type".

    Returns:
        Dict[str, Any]: The normalized payload.
    """
    if isinstance(field, Field):
        return {
            "id": field.pk,
            "type": field.type,
            **{attr: getattr(field, attr) for attr in LOOKUP_ATTRIBUTES},
        }

    payload = dict(field)
    for relation in ("section", "subform"):
        if relation in payload:
            value = payload.pop(relation)
            payload[f"{relation}_id"] = (
                value.pk if isinstance(value, models.Model) else value
            )
    return payload


def _lookup_config(payload: Mapping[str, Any]) -> Dict[str, Any]:
    lookup = payload.get("lookup")
    return lookup if isinstance(lookup, dict) else {}


def _legacy_declaration(payload: Mapping[str, Any]) -> Optional[SourceDeclaration]:
    source_module = payload.get("source_module")
    if source_module:
        return SourceDeclaration(
            "module", f"{MODULE_SOURCE_PREFIX}{source_module}", source_module
        )

    source_form = payload.get("source_form")
    if source_form:
        return SourceDeclaration(
            "form", f"{FORM_SOURCE_PREFIX}{source_form}", source_form
        )

    return None


def _prefixed_declaration(source_id: str) -> SourceDeclaration:
    """Build the declaration selected by a reserved-prefix source id."""
    if source_id.startswith(MODULE_SOURCE_PREFIX):
        return SourceDeclaration(
            "module", source_id, source_id[len(MODULE_SOURCE_PREFIX) :]
        )
    return SourceDeclaration("form", source_id, source_id[len(FORM_SOURCE_PREFIX) :])


def resolve_source(field: FieldLike) -> SourceDeclaration:
    """Resolve a field's lookup source declaration.

    The first match wins: an explicit `lookup["sourceId"]`, then
    `source_module` (as "module_<id>"), then `source_form` (as "form_<id>").

    Args:
        field: The field, or a field payload.

    Returns:
        SourceDeclaration: The canonical source declaration.

    Raises:
        MissingSourceError: If the field declares no source.
        ReservedSourceIdError: If an explicit source id uses the "module_" or
            "form_" prefix but names a different source than the field's
            legacy pointer.
    """
    payload = field_payload(field)
    explicit = _lookup_config(payload).get("sourceId")
    legacy = _legacy_declaration(payload)

    if explicit:
        explicit = str(explicit)
        if not RESERVED_SOURCE_ID.match(explicit):
            return SourceDeclaration("explicit", explicit)
        if legacy and legacy.source_id != explicit:
            raise ReservedSourceIdError(
                f"Field {payload.get('id')} declares the reserved source id "
                f"{explicit!r}, which conflicts with its source pointer "
                f"({legacy.source_id!r})."
            )
        return _prefixed_declaration(explicit)

    if legacy:
        return legacy

    raise MissingSourceError(
        f"Lookup field {payload.get('id')} declares no source (expected "
        f"lookup.sourceId, source_module or source_form)."
    )


def resolve_source_id(field: FieldLike) -> str:
    """Return the canonical lookup source id for the given field.

    Args:
        field: The field, or a field payload.

    Returns:
        str: The source id, e.g. "module_<moduleId>".
    """
    return resolve_source(field).source_id


def ensure_source(source_id: str, field: Optional[FieldLike] = None) -> LookupSource:
    """Return the LookupSource with the given id, materializing it if absent.

    Module and form sources are created from the referenced Module or Form.
    Built-in static sources are created from their catalogue entry. Any
    other id must already exist.

    Creation is an upsert keyed by the source id, so concurrent callers
    converge on one row with the last writer's metadata.

    Args:
        source_id: The canonical source id.
        field: The field that references the source, for logging.

    Returns:
        LookupSource: The existing or newly-materialized source.

    Raises:
        SourceNotFoundError: If the referenced module, form or source does
            not exist.
    """
    try:
        return LookupSource.objects.get(pk=source_id)
    except LookupSource.DoesNotExist:
        pass

    field_id = field_payload(field).get("id") if field is not None else None
    now = timezone.now()
    attrs: Dict[str, Any]

    if RESERVED_SOURCE_ID.match(source_id):
        declaration = _prefixed_declaration(source_id)
        if declaration.kind == "module":
            try:
                module = Module.objects.get(pk=declaration.target_id)
            except Module.DoesNotExist:
                raise SourceNotFoundError(
                    f"Module {declaration.target_id} referenced by lookup "
                    f"source {source_id} does not exist."
                )
            attrs = {
                "name": module.name,
                "type": LookupSource.TYPE_MODULE,
                "description": module.description or "Module with forms",
                "source_module": module,
            }
        else:
            try:
                form = Form.objects.get(pk=declaration.target_id)
            except Form.DoesNotExist:
                raise SourceNotFoundError(
                    f"Form {declaration.target_id} referenced by lookup "
                    f"source {source_id} does not exist."
                )
            attrs = {
                "name": form.name,
                "type": LookupSource.TYPE_FORM,
                "description": form.description or "Form source",
                "source_form": form,
            }
    else:
        static_source = get_static_source(source_id)
        if static_source is None:
            raise SourceNotFoundError(f"Lookup source {source_id} does not exist.")
        attrs = {
            "name": static_source.name,
            "type": LookupSource.TYPE_STATIC,
            "description": static_source.description,
        }

    defaults = {**attrs, "active": True, "updated_at": now}
    lookup_source, created = LookupSource.objects.update_or_create(
        id=source_id,
        defaults=defaults,
        create_defaults={**defaults, "created_at": now},
    )

    logger.info(
        f"Materialized lookup source {source_id} ({lookup_source.type}) "
        f"for field {field_id}."
    )

    return lookup_source


def _ancestry_from_parent(
    section_id: Optional[str], subform_id: Optional[str]
) -> Optional[Ancestry]:
    """Resolve ancestry from a section or subform id.

    Returns None if neither id is given.

    Raises:
        AncestryNotFoundError: If the given section or subform (or the
            subform's section) does not exist.
    """
    if section_id:
        section = Section.objects.select_related("form").filter(pk=section_id).first()
        if section is None:
            raise AncestryNotFoundError(f"Section {section_id} does not exist.")
        return Ancestry(section.form_id, section.form.module_id)

    if subform_id:
        subform = (
            Subform.objects.select_related("section__form")
            .filter(pk=subform_id)
            .first()
        )
        if subform is None:
            raise AncestryNotFoundError(f"Subform {subform_id} does not exist.")
        section = subform.section
        return Ancestry(section.form_id, section.form.module_id)

    return None


def resolve_ancestry(field: FieldLike) -> Ancestry:
    """Determine the form and module that own the given field.

    Walks from the field's section, or from its subform's section. If the
    payload carries neither (e.g. a partial update), the persisted Field is
    re-fetched and its stored parentage is used instead.

    Args:
        field: The field, or a field payload.

    Returns:
        Ancestry: The owning form id and module id.

    Raises:
        AncestryNotFoundError: If no path from the field to a form and
            module could be established.
    """
    payload = field_payload(field)

    ancestry = _ancestry_from_parent(
        payload.get("section_id"), payload.get("subform_id")
    )
    if ancestry:
        return ancestry

    field_id = payload.get("id")
    persisted = (
        Field.objects.filter(pk=field_id).values("section_id", "subform_id").first()
        if field_id
        else None
    )
    if persisted is None:
        raise AncestryNotFoundError(
            f"Field {field_id} has no section or subform, and no persisted "
            f"field was found to fall back on."
        )

    ancestry = _ancestry_from_parent(persisted["section_id"], persisted["subform_id"])
    if ancestry is None:
        raise AncestryNotFoundError(
            f"Persisted field {field_id} belongs to neither a section nor a subform."
        )

    return ancestry


def _complete_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Fill the lookup attributes a partial payload lacks from the persisted Field.

    Raises:
        AncestryNotFoundError: If the field has no id or is not persisted.
    """
    field_id = payload.get("id")
    persisted = (
        Field.objects.filter(pk=field_id).values(*LOOKUP_ATTRIBUTES).first()
        if field_id
        else None
    )
    if persisted is None:
        raise AncestryNotFoundError(f"Field {field_id} does not exist.")

    return {**persisted, **payload}


def _projection(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the relation's projection configuration for a field payload.

    The flat columns win; the nested lookup configuration fills the gaps.
    """
    lookup = _lookup_config(payload)
    mapping = lookup.get("fieldMapping") or {}

    def first(*values: Any, default: Any = None) -> Any:
        return next((v for v in values if v is not None and v != ""), default)

    return {
        "display_field": first(
            payload.get("display_field"),
            mapping.get("display"),
            lookup.get("displayField"),
        ),
        "value_field": first(
            payload.get("value_field"),
            mapping.get("value"),
            lookup.get("valueField"),
        ),
        "multiple": bool(
            first(payload.get("multiple"), lookup.get("multiple"), default=False)
        ),
        "searchable": bool(
            first(payload.get("searchable"), lookup.get("searchable"), default=True)
        ),
        "filters": first(payload.get("filters"), lookup.get("filters"), default={}),
    }


def upsert_relation(field: FieldLike) -> Optional[LookupFieldRelation]:
    """Create or update the lookup relation for a field.

    A no-op for fields that are not lookups. Otherwise resolves the field's
    source and ancestry, materializes the source, and upserts the relation
    row `lfr_<sourceId>_<fieldId>`. Calling this repeatedly with the same
    configuration leaves exactly one row, holding the latest configuration.

    Args:
        field: A Field instance, or a payload with at least "id" and "type".
            Lookup attributes absent from a payload are read from the
            persisted Field.

    Returns:
        Optional[LookupFieldRelation]: The relation, or None if the field is
            not a lookup or its relation could not be resolved.

    Raises:
        DatabaseError: If the database fails while writing. Resolution
            failures are logged, never raised.
    """
    payload = field_payload(field)
    field_id = payload.get("id")

    if payload.get("type") != LookupField.name:
        logger.debug(f"Field {field_id} is not a lookup field; skipping relation.")
        return None

    source_id: Optional[str] = None
    try:
        with transaction.atomic():
            if not isinstance(field, Field):
                payload = _complete_payload(payload)

            source_id = resolve_source(payload).source_id
            ancestry = resolve_ancestry(payload)
            lookup_source = ensure_source(source_id, payload)

            now = timezone.now()
            values = {
                **_projection(payload),
                "form_id": ancestry.form_id,
                "module_id": ancestry.module_id,
                "updated_at": now,
            }
            relation, created = LookupFieldRelation.objects.update_or_create(
                id=LookupFieldRelation.make_id(source_id, field_id),
                defaults=values,
                create_defaults={
                    **values,
                    "lookup_source": lookup_source,
                    "field_id": field_id,
                    "created_at": now,
                },
            )
    except LookupResolutionError as e:
        logger.warning(
            f"Skipped lookup relation for field {field_id} (source "
            f"{source_id or 'unresolved'}): {e.__class__.__name__}: {e}"
        )
        return None
    except DatabaseError:
        logger.exception(
            f"Database error while saving the lookup relation for field "
            f"{field_id} (source {source_id or 'unresolved'})."
        )
        raise

    logger.info(
        f"{'Created' if created else 'Updated'} lookup relation {relation.pk} "
        f"(form {relation.form_id}, module {relation.module_id})."
    )
    lookup_relation_saved.send(
        sender=LookupFieldRelation, relation=relation, created=created
    )

    return relation
