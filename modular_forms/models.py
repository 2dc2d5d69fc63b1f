# -*- coding: utf-8 -*-

"""Model definitions for the modular_forms app."""

from typing import Any, Dict, List, Optional, cast

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import JSONField, Q
from django.utils import timezone
from django.utils.text import slugify

from modular_forms.fields import FIELD_TYPE_OPTIONS, FIELD_TYPES, LookupField
from modular_forms.utils import generate_id

MODULE_SOURCE_PREFIX = "module_"
FORM_SOURCE_PREFIX = "form_"
RELATION_ID_PREFIX = "lfr_"


class ModularBaseModel(models.Model):
    """A common base for all modular_forms models.

    Primary keys are strings so that callers can supply their own
    identifiers, and so that derived identifiers (lookup sources and
    relations) share a column type with generated ones.
    """

    id = models.CharField(
        primary_key=True,
        max_length=191,
        default=generate_id,
        editable=False,
    )
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Module(ModularBaseModel):
    """A folder in the module tree. Contains forms and sub-modules."""

    MODULE_TYPE_OPTIONS = (
        ("master", "Master"),
        ("child", "Child"),
        ("standard", "Standard"),
    )

    name = models.TextField(help_text="The human-friendly name of the module.")
    description = models.TextField(blank=True, default="")
    icon = models.TextField(blank=True, default="")
    color = models.TextField(blank=True, default="")
    settings = JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)

    parent = models.ForeignKey(
        "self",
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="children",
    )
    parent_id: Optional[str]
    module_type = models.TextField(choices=MODULE_TYPE_OPTIONS, default="standard")
    level = models.PositiveIntegerField(
        default=0,
        editable=False,
        help_text="The depth of the module in the tree. Computed on save.",
    )
    path = models.TextField(
        blank=True,
        default="",
        editable=False,
        help_text="The slash-separated ids of the module's ancestors and itself.",
    )
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)

    children: "models.BaseManager[Module]"
    forms: "models.BaseManager[Form]"

    class Meta:
        ordering = ("sort_order", "name")

    def __str__(self) -> str:
        return self.name or f"Untitled Module {self.pk}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Save the module.

        Derives the level and path from the parent module.

        Args:
            args: (Passed to super)
            kwargs: (Passed to super)
        """
        parent = self.parent if self.parent_id else None
        self.level = parent.level + 1 if parent else 0
        self.path = "/".join(filter(bool, (parent.path if parent else "", self.pk)))

        super().save(*args, **kwargs)

    @property
    def lookup_source_id(self) -> str:
        """Return the id of the lookup source backed by the module."""
        return f"{MODULE_SOURCE_PREFIX}{self.pk}"


class Form(ModularBaseModel):
    """A form made of ordered sections, published for submission."""

    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="forms")
    module_id: str
    name = models.TextField(help_text="The human-friendly name of the form.")
    description = models.TextField(blank=True, default="")
    settings = JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)

    is_published = models.BooleanField(default=False)
    published_at = models.DateTimeField(blank=True, null=True)
    allow_anonymous = models.BooleanField(default=True)
    require_login = models.BooleanField(default=False)
    max_submissions = models.PositiveIntegerField(blank=True, null=True)
    submission_message = models.TextField(blank=True, default="")

    sections: "models.BaseManager[Section]"
    records: "models.BaseManager[Record]"

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name or f"Untitled Form {self.pk}"

    @property
    def lookup_source_id(self) -> str:
        """Return the id of the lookup source backed by the form."""
        return f"{FORM_SOURCE_PREFIX}{self.pk}"

    def all_fields(self) -> List["Field"]:
        """Return every field declared anywhere in the form.

        Covers the fields placed directly in sections and the fields of
        subforms. Fields are ordered by section, then by subform (direct
        section fields first), then by their own order.

        Returns:
            List[Field]: The fields of the form.
        """
        fields = Field.objects.filter(
            Q(section__form=self) | Q(subform__section__form=self)
        ).select_related("section", "subform", "subform__section")

        def _position(field: Field) -> tuple:
            section = cast(Section, field.owning_section)
            subform_order = field.subform.order if field.subform_id else -1
            return (section.order, section.pk, subform_order, field.order, field.pk)

        return sorted(fields, key=_position)


class Section(ModularBaseModel):
    """An ordered group of fields and subforms within a form."""

    form = models.ForeignKey(Form, on_delete=models.CASCADE, related_name="sections")
    form_id: str
    title = models.TextField(blank=True, default="")
    description = models.TextField(blank=True, default="")
    order = models.IntegerField(default=0)
    columns = models.PositiveSmallIntegerField(default=1)
    visible = models.BooleanField(default=True)
    collapsible = models.BooleanField(default=False)
    collapsed = models.BooleanField(default=False)

    fields: "models.BaseManager[Field]"
    subforms: "models.BaseManager[Subform]"

    class Meta:
        ordering = ("order",)

    def __str__(self) -> str:
        return self.title or f"Section {self.pk}"


class Subform(ModularBaseModel):
    """A repeatable group of fields nested in a section."""

    section = models.ForeignKey(
        Section, on_delete=models.CASCADE, related_name="subforms"
    )
    section_id: str
    name = models.TextField(blank=True, default="")
    description = models.TextField(blank=True, default="")
    order = models.IntegerField(default=0)

    fields: "models.BaseManager[Field]"

    class Meta:
        ordering = ("order",)

    def __str__(self) -> str:
        return self.name or f"Subform {self.pk}"


class Field(ModularBaseModel):
    """A field on a form.

    A field lives either directly in a section or in a subform, never both.
    Fields of type "lookup" point at a lookup source, declared either with
    `lookup["sourceId"]` or with one of the legacy `source_module` /
    `source_form` pointers.
    """

    WIDTH_OPTIONS = (
        ("full", "Full"),
        ("half", "Half"),
        ("third", "Third"),
        ("quarter", "Quarter"),
    )

    section = models.ForeignKey(
        Section,
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="fields",
    )
    section_id: Optional[str]
    subform = models.ForeignKey(
        Subform,
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="fields",
    )
    subform_id: Optional[str]

    type = models.TextField(
        choices=FIELD_TYPE_OPTIONS,
        help_text="The palette entry used to render the field.",
    )
    label = models.TextField(
        help_text="The label to be displayed for this field in the form.",
    )
    placeholder = models.TextField(blank=True, default="")
    description = models.TextField(blank=True, default="")
    default_value = models.TextField(blank=True, default="")
    options = JSONField(blank=True, default=list, encoder=DjangoJSONEncoder)
    validation = JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)
    visible = models.BooleanField(default=True)
    readonly = models.BooleanField(default=False)
    width = models.TextField(choices=WIDTH_OPTIONS, default="full")
    order = models.IntegerField(default=0)

    formula = models.TextField(
        blank=True,
        default="",
        help_text="An expression computed from the other values of a submission.",
    )
    rollup = JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)

    lookup = JSONField(
        blank=True,
        null=True,
        encoder=DjangoJSONEncoder,
        help_text='The lookup configuration, e.g. {"sourceId": "form_..."}.',
    )
    source_module = models.TextField(
        blank=True,
        null=True,
        help_text="Legacy pointer to the module a lookup field reads from.",
    )
    source_form = models.TextField(
        blank=True,
        null=True,
        help_text="Legacy pointer to the form a lookup field reads from.",
    )
    display_field = models.TextField(blank=True, null=True)
    value_field = models.TextField(blank=True, null=True)
    multiple = models.BooleanField(default=False)
    searchable = models.BooleanField(default=True)
    filters = JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)

    lookup_relations: "models.BaseManager[LookupFieldRelation]"

    class Meta:
        ordering = ("order",)
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(section__isnull=False, subform__isnull=True)
                    | Q(section__isnull=True, subform__isnull=False)
                ),
                name="modular_forms_field_single_parent",
                violation_error_message=(
                    "A field must belong to exactly one of a section or a subform."
                ),
            ),
        ]

    def __str__(self) -> str:
        return self.label or f"New {cast(str, self._meta.verbose_name).title()}"

    @property
    def is_lookup(self) -> bool:
        return self.type == LookupField.name

    @property
    def slug(self) -> str:
        """Return a machine-friendly name derived from the label."""
        return slugify(self.label).replace("-", "_")

    @property
    def type_label(self) -> str:
        field_type = FIELD_TYPES.get(self.type)
        return field_type.label if field_type else self.type

    @property
    def owning_section(self) -> Optional[Section]:
        """Return the section the field belongs to, directly or via its subform."""
        if self.section_id:
            return self.section
        if self.subform_id:
            return self.subform.section
        return None


class Record(ModularBaseModel):
    """A single submission of a form.

    `record_data` maps field ids to enriched entries: the submitted value
    along with a snapshot of the field's metadata at submission time.
    """

    form = models.ForeignKey(Form, on_delete=models.CASCADE, related_name="records")
    form_id: str
    record_data = JSONField(default=dict, encoder=DjangoJSONEncoder)
    fingerprint = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        editable=False,
        help_text="SHA-256 of the canonical JSON of the submitted values.",
    )
    submitted_by = models.TextField(blank=True, default="")
    submitted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("-submitted_at",)
        constraints = [
            models.UniqueConstraint(
                fields=("form", "fingerprint"),
                name="modular_forms_record_unique_fingerprint",
            ),
        ]

    def __str__(self) -> str:
        return f"Record {self.pk}"

    @property
    def values(self) -> Dict[str, Any]:
        """Return the submitted values keyed by field id.

        Enriched entries are unwrapped to their value; entries stored
        without enrichment are returned as-is.
        """
        return {key: unwrap(entry) for key, entry in (self.record_data or {}).items()}


def unwrap(entry: Any) -> Any:
    """Return the value of an enriched record entry."""
    if isinstance(entry, dict) and "value" in entry and "type" in entry:
        return entry["value"]
    return entry


class LookupSource(ModularBaseModel):
    """Something that lookup fields can read options from.

    Static sources are baked-in lists. Form sources read one form's
    records, and module sources aggregate the records of every form in a
    module.
    """

    TYPE_STATIC = "static"
    TYPE_FORM = "form"
    TYPE_MODULE = "module"
    TYPE_OPTIONS = (
        (TYPE_STATIC, "Static"),
        (TYPE_FORM, "Form"),
        (TYPE_MODULE, "Module"),
    )

    id = models.CharField(primary_key=True, max_length=191)
    name = models.TextField()
    type = models.TextField(choices=TYPE_OPTIONS)
    description = models.TextField(blank=True, default="")
    source_form = models.ForeignKey(
        Form,
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="lookup_sources",
    )
    source_form_id: Optional[str]
    source_module = models.ForeignKey(
        Module,
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="lookup_sources",
    )
    source_module_id: Optional[str]
    active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(default=timezone.now)

    relations: "models.BaseManager[LookupFieldRelation]"

    class Meta:
        ordering = ("name",)
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(
                        type="static",
                        source_form__isnull=True,
                        source_module__isnull=True,
                    )
                    | Q(
                        type="form",
                        source_form__isnull=False,
                        source_module__isnull=True,
                    )
                    | Q(
                        type="module",
                        source_form__isnull=True,
                        source_module__isnull=False,
                    )
                ),
                name="modular_forms_lookup_source_backing",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.type})"


class LookupFieldRelation(ModularBaseModel):
    """The link between one lookup source and one lookup field.

    Carries the owning form and module of the field (not of the source)
    and the field's projection configuration, so that submitted values
    can be rendered with human-readable labels.
    """

    id = models.CharField(primary_key=True, max_length=400)
    lookup_source = models.ForeignKey(
        LookupSource, on_delete=models.CASCADE, related_name="relations"
    )
    lookup_source_id: str
    field = models.ForeignKey(
        Field, on_delete=models.CASCADE, related_name="lookup_relations"
    )
    field_id: str
    form = models.ForeignKey(
        Form, on_delete=models.CASCADE, related_name="lookup_relations"
    )
    form_id: str
    module = models.ForeignKey(
        Module, on_delete=models.CASCADE, related_name="lookup_relations"
    )
    module_id: str

    display_field = models.TextField(blank=True, null=True)
    value_field = models.TextField(blank=True, null=True)
    multiple = models.BooleanField(default=False)
    searchable = models.BooleanField(default=True)
    filters = JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("lookup_source", "field"),
                name="modular_forms_lookup_relation_unique_pair",
            ),
        ]

    def __str__(self) -> str:
        return self.pk

    @staticmethod
    def make_id(source_id: str, field_id: str) -> str:
        """Return the relation id for a (source, field) pair."""
        return f"{RELATION_ID_PREFIX}{source_id}_{field_id}"
