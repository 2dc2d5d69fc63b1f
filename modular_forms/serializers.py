"""Serializers for modular_forms models and request payloads."""

import json
import re
from typing import Any, Dict, Mapping

from django.core.serializers.json import DjangoJSONEncoder

from modular_forms.models import Field, LookupFieldRelation

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_json(data: Mapping[str, Any], **kwargs: Any) -> Dict[str, Any]:
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder, **kwargs))


def to_snake_case(key: str) -> str:
    """Convert a camelCase payload key to its snake_case attribute name."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def payload_to_attributes(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert the top-level keys of a JSON payload to attribute names.

    Nested values (e.g. the lookup configuration) are left as they are.
    `sectionId` and `subformId` become `section` and `subform`.
    """
    attrs = {}
    for key, value in payload.items():
        name = to_snake_case(key)
        if name in ("section_id", "subform_id"):
            name = name[: -len("_id")]
        attrs[name] = value
    return attrs


def relation_to_json(relation: LookupFieldRelation) -> Dict[str, Any]:
    """Convert the given lookup field relation to JSON."""
    return _to_json(
        {
            "id": relation.pk,
            "lookupSourceId": relation.lookup_source_id,
            "fieldId": relation.field_id,
            "formId": relation.form_id,
            "moduleId": relation.module_id,
            "displayField": relation.display_field,
            "valueField": relation.value_field,
            "multiple": relation.multiple,
            "searchable": relation.searchable,
            "filters": relation.filters,
            "createdAt": relation.created_at,
            "updatedAt": relation.updated_at,
        }
    )


def field_to_json(field: Field) -> Dict[str, Any]:
    """Convert the given field, and its lookup relations, to JSON."""
    return _to_json(
        {
            "id": field.pk,
            "sectionId": field.section_id,
            "subformId": field.subform_id,
            "type": field.type,
            "label": field.label,
            "placeholder": field.placeholder,
            "description": field.description,
            "defaultValue": field.default_value,
            "options": field.options,
            "validation": field.validation,
            "visible": field.visible,
            "readonly": field.readonly,
            "width": field.width,
            "order": field.order,
            "formula": field.formula,
            "rollup": field.rollup,
            "lookup": field.lookup,
            "sourceModule": field.source_module,
            "sourceForm": field.source_form,
            "displayField": field.display_field,
            "valueField": field.value_field,
            "multiple": field.multiple,
            "searchable": field.searchable,
            "filters": field.filters,
            "lookupRelations": [
                relation_to_json(relation)
                for relation in field.lookup_relations.order_by("pk")
            ],
        }
    )
