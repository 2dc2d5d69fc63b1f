# -*- coding: utf-8 -*-

"""Field type definitions for the modular_forms app.

Each FieldType describes one entry in the form builder's palette. The
registry backs the choices of `Field.type`, the field-type listing
endpoint, and the type metadata snapshotted onto submitted records.
"""

from typing import Any, Dict, Tuple, Type, cast

##
# FIELD_TYPES
#
# A dict mapping of field types, where the key is the machine name of the
# field type (e.g. "lookup"), and the value is the `FieldType` class itself.
#
# Built dynamically to include all concrete descendants of `FieldType`.
#
FIELD_TYPES: Dict[str, Type["FieldType"]] = {}


class FieldTypeOptions:
    """Defaults for the `Meta` options of a FieldType."""

    abstract = False
    force_replacement = False


class FieldTypeMetaclass(type):
    """Registers every concrete FieldType in FIELD_TYPES by name."""

    def __new__(
        cls,
        name: str,
        bases: Tuple[type, ...],
        attrs: Dict[str, Any],
        **kwargs: Any,
    ) -> "FieldTypeMetaclass":
        """Build the FieldType class and register it unless it is abstract.

        Raises:
            ValueError: If the name is already taken and the class does not
                set `Meta.force_replacement`.
        """
        attrs_meta = attrs.pop("Meta", None)
        attrs["_meta"] = type(
            "Meta", tuple(filter(bool, (attrs_meta, FieldTypeOptions))), {}
        )

        clsobj = super().__new__(cls, name, bases, attrs, **kwargs)  # type: ignore

        if clsobj._meta.abstract:
            return cast("FieldTypeMetaclass", clsobj)

        if clsobj.name in FIELD_TYPES and not clsobj._meta.force_replacement:
            raise ValueError(
                f"A FieldType named {clsobj.name} was already registered "
                f"({FIELD_TYPES[clsobj.name]})."
            )

        FIELD_TYPES[clsobj.name] = clsobj

        return cast("FieldTypeMetaclass", clsobj)


class FieldType(metaclass=FieldTypeMetaclass):
    """A field type available in the form builder palette."""

    class Meta:
        abstract = True

    ##
    # name
    #
    # The machine name stored in `Field.type`, e.g. "lookup".
    #
    name: str = ""

    ##
    # label
    #
    # The human-friendly name of the field type, e.g. "Text Input".
    #
    label: str = ""

    ##
    # category
    #
    # The palette group: "basic", "choice" or "advanced".
    #
    category: str = "basic"

    description: str = ""

    ##
    # default_props
    #
    # Attributes applied to a newly-dropped field of this type.
    #
    default_props: Dict[str, Any] = {}

    @classmethod
    def as_json(cls) -> Dict[str, Any]:
        """Return the palette entry for the field type."""
        return {
            "name": cls.name,
            "label": cls.label,
            "category": cls.category,
            "description": cls.description,
            "defaultProps": dict(cls.default_props),
        }


class TextField(FieldType):
    name = "text"
    label = "Text Input"
    description = "Single line text input"


class TextAreaField(FieldType):
    name = "textarea"
    label = "Text Area"
    description = "Multi-line text input"
    default_props = {"rows": 3}


class NumberField(FieldType):
    name = "number"
    label = "Number"
    description = "Numeric input field"


class EmailField(FieldType):
    name = "email"
    label = "Email"
    description = "Email address input"
    default_props = {"validation": {"email": True}}


class PhoneField(FieldType):
    name = "phone"
    label = "Phone"
    description = "Phone number input"
    default_props = {"validation": {"phone": True}}


class DateField(FieldType):
    name = "date"
    label = "Date"
    description = "Date picker field"


class CheckboxField(FieldType):
    name = "checkbox"
    label = "Checkbox"
    category = "choice"
    description = "Single checkbox"


class RadioField(FieldType):
    name = "radio"
    label = "Radio Buttons"
    category = "choice"
    description = "Multiple choice (single select)"
    default_props = {
        "options": [{"id": "opt1", "label": "Option 1", "value": "option1"}]
    }


class SelectField(FieldType):
    name = "select"
    label = "Dropdown"
    category = "choice"
    description = "Dropdown select list"
    default_props = {
        "options": [{"id": "opt1", "label": "Option 1", "value": "option1"}]
    }


class FileField(FieldType):
    name = "file"
    label = "File Upload"
    category = "advanced"
    description = "File upload field"
    default_props = {"multiple": False}


class LookupField(FieldType):
    """A field whose value is picked from another form, module or static list."""

    name = "lookup"
    label = "Lookup"
    category = "advanced"
    description = "Reference data from other sources"


class FormulaField(FieldType):
    """A field computed from the other values of the submission."""

    name = "formula"
    label = "Formula"
    category = "advanced"
    description = "Calculated field based on other inputs"


class RollupField(FieldType):
    name = "rollup"
    label = "Rollup"
    category = "advanced"
    description = "Aggregated value from related records"


##
# FIELD_TYPE_OPTIONS
#
# A choice-field-friendly list of all available field types. Sorted for
# migration stability.
#
FIELD_TYPE_OPTIONS = sorted(
    ((k, v.label) for k, v in FIELD_TYPES.items()),
    key=lambda o: o[0],
)
