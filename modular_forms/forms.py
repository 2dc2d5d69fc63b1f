# -*- coding: utf-8 -*-
"""Forms that validate the input of the modular_forms views."""

from typing import Any, Dict, Iterable, Optional, Type

from django import forms
from django.core.exceptions import ValidationError
from django.forms.models import modelform_factory

from modular_forms.models import Field
from modular_forms.query import default_page_size, max_page_size

##
# FIELD_WRITE_ATTRIBUTES
#
# The Field attributes clients may set through the fields endpoints.
#
FIELD_WRITE_ATTRIBUTES = (
    "section",
    "subform",
    "type",
    "label",
    "placeholder",
    "description",
    "default_value",
    "options",
    "validation",
    "visible",
    "readonly",
    "width",
    "order",
    "formula",
    "rollup",
    "lookup",
    "source_module",
    "source_form",
    "display_field",
    "value_field",
    "multiple",
    "searchable",
    "filters",
)


class FieldForm(forms.ModelForm):
    """Validates the attributes of a Field being created or updated.

    Does not save anything itself: `cleaned_data` is handed to the field
    write service, which also maintains the field's lookup relation.
    """

    id = forms.CharField(required=False, max_length=191)

    class Meta:
        model = Field
        fields = FIELD_WRITE_ATTRIBUTES

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        # Attributes with a model default (e.g. width and order) may be
        # omitted.
        for name, form_field in self.fields.items():
            if name != "id" and Field._meta.get_field(name).has_default():
                form_field.required = False

    def clean_id(self) -> Optional[str]:
        field_id = self.cleaned_data.get("id") or None
        if field_id and Field.objects.filter(pk=field_id).exists():
            raise ValidationError(f"A field with id {field_id} already exists.")
        return field_id

    def clean(self) -> Dict[str, Any]:
        """Clean the form data.

        Form JSON fields treat an empty list or dict as "no value"; the
        non-nullable JSON columns keep the empty container instead.
        """
        cleaned_data = super().clean()

        for name in ("options", "validation", "filters"):
            if name not in cleaned_data or cleaned_data[name] is not None:
                continue
            raw = self.data.get(name)
            cleaned_data[name] = (
                raw
                if isinstance(raw, (list, dict))
                else Field._meta.get_field(name).get_default()
            )

        return cleaned_data

    def field_attributes(self) -> Dict[str, Any]:
        """Return the cleaned attributes to write.

        Only attributes present in the submitted data are returned, so that
        omitted attributes keep their model defaults (or stored values).
        """
        attrs = {
            name: self.cleaned_data[name]
            for name in self._meta.fields  # type: ignore
            if name in self.data and name in self.cleaned_data
        }
        if self.cleaned_data.get("id"):
            attrs["id"] = self.cleaned_data["id"]
        return attrs


def field_update_form(changed: Iterable[str]) -> Type[FieldForm]:
    """Build a FieldForm that only validates the given attributes.

    Args:
        changed: The names of the attributes being updated.

    Returns:
        Type[FieldForm]: A FieldForm subclass limited to those attributes.
    """
    fields = [name for name in FIELD_WRITE_ATTRIBUTES if name in set(changed)]
    form_class = modelform_factory(Field, form=FieldForm, fields=fields)
    form_class.base_fields.pop("id", None)
    return form_class


class LookupFieldsQueryForm(forms.Form):
    sourceId = forms.CharField(max_length=400)


class LookupDataQueryForm(forms.Form):
    """Validates the query parameters of the lookup data endpoint."""

    sourceId = forms.CharField(max_length=400)
    search = forms.CharField(required=False, strip=True)
    limit = forms.IntegerField(required=False, min_value=1)
    offset = forms.IntegerField(required=False, min_value=0)
    displayField = forms.CharField(required=False)
    valueField = forms.CharField(required=False)
    storeField = forms.CharField(required=False)
    descriptionField = forms.CharField(required=False)
    fieldId = forms.CharField(required=False)

    def clean_limit(self) -> int:
        limit = self.cleaned_data.get("limit") or default_page_size()
        if limit > max_page_size():
            raise ValidationError(
                f"Ensure this value is less than or equal to {max_page_size()}."
            )
        return limit

    def clean_offset(self) -> int:
        return self.cleaned_data.get("offset") or 0

    def query_kwargs(self) -> Dict[str, Any]:
        """Return the cleaned parameters as `query.get_data` arguments."""
        data = self.cleaned_data
        return {
            "source_id": data["sourceId"],
            "search": data.get("search") or None,
            "limit": data["limit"],
            "offset": data["offset"],
            "display_field": data.get("displayField") or None,
            "value_field": data.get("valueField") or None,
            "store_field": data.get("storeField") or None,
            "description_field": data.get("descriptionField") or None,
            "field_id": data.get("fieldId") or None,
        }
