# -*- coding: utf-8 -*-

"""Field write operations.

Every write to a Field goes through here so that the lookup relation of the
field is refreshed in the same transaction as the write itself.
"""

import logging
from typing import Any, Dict, Optional

from django.db import transaction

from modular_forms.lookups import RESERVED_SOURCE_ID, FieldLike, upsert_relation
from modular_forms.models import (
    FORM_SOURCE_PREFIX,
    MODULE_SOURCE_PREFIX,
    Field,
    LookupFieldRelation,
)

logger = logging.getLogger(__name__)


def flatten_lookup(attrs: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the nested lookup configuration onto the flat Field columns.

    A reserved-prefix `lookup["sourceId"]` sets the matching legacy pointer
    (and clears the other one) unless the caller set either pointer to a value.
    `lookup["fieldMapping"]` fills `display_field` and `value_field`, and
    `lookup["multiple"]` / `lookup["searchable"]` fill their columns, when
    those are not given.

    Args:
        attrs: Field attributes about to be written.

    Returns:
        Dict[str, Any]: The attributes with the flat columns filled in.
    """
    lookup = attrs.get("lookup")
    if not isinstance(lookup, dict):
        return attrs

    attrs = dict(attrs)
    source_id = str(lookup.get("sourceId") or "")

    if (
        RESERVED_SOURCE_ID.match(source_id)
        and not attrs.get("source_module")
        and not attrs.get("source_form")
    ):
        if source_id.startswith(MODULE_SOURCE_PREFIX):
            attrs["source_module"] = source_id[len(MODULE_SOURCE_PREFIX) :]
            attrs["source_form"] = None
        else:
            attrs["source_form"] = source_id[len(FORM_SOURCE_PREFIX) :]
            attrs["source_module"] = None

    mapping = lookup.get("fieldMapping") or {}
    for column, key in (("display_field", "display"), ("value_field", "value")):
        if attrs.get(column) in (None, "") and mapping.get(key):
            attrs[column] = mapping[key]

    for column in ("multiple", "searchable"):
        if column not in attrs and lookup.get(column) is not None:
            attrs[column] = bool(lookup[column])

    return attrs


def sync_relations(
    field: Field, payload: Optional[FieldLike] = None
) -> Optional[LookupFieldRelation]:
    """Bring the lookup relations of a saved field in line with the field.

    A lookup field keeps only the relation to its current source. If that
    source cannot be resolved, the relations it already has are left alone.
    A field that is not a lookup loses all of its relations.

    Args:
        field: The saved field.
        payload: What to refresh the relation from, if not the field itself.

    Returns:
        Optional[LookupFieldRelation]: The current relation, if any.
    """
    if not field.is_lookup:
        field.lookup_relations.all().delete()
        return None

    relation = upsert_relation(field if payload is None else payload)
    if relation is not None:
        field.lookup_relations.exclude(pk=relation.pk).delete()

    return relation


@transaction.atomic
def create_field(**attrs: Any) -> Field:
    """Create a field and its lookup relation.

    Args:
        attrs: The attributes of the new Field.

    Returns:
        Field: The new field.

    Raises:
        ValidationError: If the attributes do not make a valid Field.
    """
    field = Field(**flatten_lookup(attrs))
    field.full_clean()
    field.save()

    logger.info(f"Created {field.type} field {field.pk}.")

    sync_relations(field)

    return field


@transaction.atomic
def update_field(field_id: str, **changes: Any) -> Field:
    """Update a field and refresh its lookup relation.

    The relation is refreshed from the id, type and changed attributes of
    the field; the rest is read back from the stored field. Relations to
    sources the field no longer points at are removed, as are all of its
    relations if it is no longer a lookup.

    Args:
        field_id: The id of the field to update.
        changes: The attributes to change.

    Returns:
        Field: The updated field.

    Raises:
        Field.DoesNotExist: If the field does not exist.
        ValidationError: If the changes do not make a valid Field.
    """
    field = Field.objects.select_for_update().get(pk=field_id)

    changes = flatten_lookup(changes)
    for attr, value in changes.items():
        setattr(field, attr, value)

    field.full_clean()
    field.save()

    changed = ", ".join(sorted(changes)) or "nothing"
    logger.info(f"Updated field {field.pk} ({changed}).")

    sync_relations(field, {"id": field.pk, "type": field.type, **changes})

    return field


@transaction.atomic
def delete_field(field_id: str) -> None:
    """Delete a field. Its lookup relations are deleted with it.

    Raises:
        Field.DoesNotExist: If the field does not exist.
    """
    field = Field.objects.get(pk=field_id)
    field.delete()

    logger.info(f"Deleted field {field_id}.")
