# -*- coding: utf-8 -*-

"""Django admin configurations for modular_forms."""

import logging
from typing import Any, Mapping, Type, cast

from django import forms
from django.contrib import admin
from django.db import models
from django.http import HttpRequest
from django.urls import reverse
from django.utils.safestring import SafeText, mark_safe

from modular_forms.models import (
    Field,
    Form,
    LookupFieldRelation,
    LookupSource,
    Module,
    Record,
    Section,
)
from modular_forms.services import sync_relations

logger = logging.getLogger(__name__)

DEFAULT_FORMFIELD_OVERRIDES = cast(
    Mapping[Type[models.Field], Mapping[str, Any]],
    {
        models.TextField: {
            "widget": forms.widgets.TextInput(
                attrs={
                    "size": "50",
                },
            ),
        },
    },
)


class ModularAdminMixin:
    """An admin class mixin for modular_forms models."""

    formfield_overrides = DEFAULT_FORMFIELD_OVERRIDES


def _changelist_link(
    model: Type[models.Model], label: Any, **filters: Any
) -> SafeText:
    """Link to the changelist of a model, filtered by the given lookups."""
    opts = model._meta
    changelist_url = reverse(f"admin:{opts.app_label}_{opts.model_name}_changelist")
    query = "&".join(f"{key}={value}" for key, value in filters.items())

    return mark_safe(f'<a href="{changelist_url}?{query}">{label}</a>')  # noqa: S308


@admin.register(Module)
class ModuleAdmin(ModularAdminMixin, admin.ModelAdmin):
    """An admin configuration for the module tree."""

    list_display = ("name", "module_type", "parent", "level", "_forms_count")
    list_filter = ("module_type", "is_active")
    search_fields = ("name", "description")
    readonly_fields = ("level", "path")

    def get_queryset(self, request: HttpRequest) -> "models.QuerySet[Module]":
        return (
            super()
            .get_queryset(request)
            .select_related("parent")
            .annotate(models.Count("forms", distinct=True))
        )

    def _forms_count(self, module: Module) -> SafeText:
        """The number of forms directly under this module.

        Args:
            module: The module object.

        Returns:
            SafeText: The form count, linked to the forms listing filtered by
                the module.
        """
        return _changelist_link(
            Form,
            module.forms__count,  # type: ignore
            module__id__exact=module.pk,
        )

    _forms_count.short_description = "Forms"  # type: ignore
    _forms_count.admin_order_field = "forms__count"  # type: ignore


class SectionsInline(ModularAdminMixin, admin.StackedInline):
    """An inline for the ordered sections of a form."""

    model = Section
    classes = ("collapse",)
    extra = 0


@admin.register(Form)
class FormAdmin(ModularAdminMixin, admin.ModelAdmin):
    """An admin configuration for managing forms."""

    list_display = ("name", "module", "is_published", "_records_count")
    list_filter = ("is_published", "module")
    search_fields = ("name", "description")
    inlines = (SectionsInline,)

    def get_queryset(self, request: HttpRequest) -> "models.QuerySet[Form]":
        """Overrides the default queryset to optimize fetches.

        Args:
            request: The current HTTP request.

        Returns:
            models.QuerySet[Form]: An optimized queryset.
        """
        return (
            super()
            .get_queryset(request)
            .select_related("module")
            .annotate(models.Count("records", distinct=True))
        )

    def _records_count(self, form: Form) -> SafeText:
        """The number of records related to this form.

        Args:
            form: The form object.

        Returns:
            SafeText: The number of records related to the form in a
                hyperlink to the records listing with a filter for the form.
        """
        return _changelist_link(
            Record,
            form.records__count,  # type: ignore
            form__id__exact=form.pk,
        )

    _records_count.short_description = "Records"  # type: ignore
    _records_count.admin_order_field = "records__count"  # type: ignore


@admin.register(Field)
class FieldAdmin(ModularAdminMixin, admin.ModelAdmin):
    """An admin configuration for fields.

    Saving a field here refreshes or prunes its lookup relations, as the
    field write service does.
    """

    list_display = ("label", "type", "section", "subform", "order")
    list_filter = ("type",)
    search_fields = ("label", "id")
    list_select_related = ("section", "subform")

    def save_model(
        self, request: HttpRequest, obj: Field, form: forms.ModelForm, change: bool
    ) -> None:
        super().save_model(request, obj, form, change)

        if sync_relations(obj) is None and obj.is_lookup:
            logger.warning(
                f"Field {obj.pk} was saved without a lookup relation; "
                "check its source."
            )


@admin.register(Record)
class RecordAdmin(ModularAdminMixin, admin.ModelAdmin):
    """An admin configuration for browsing submitted records."""

    list_display = ("__str__", "_form_label", "submitted_by", "submitted_at")
    list_filter = ("form",)
    readonly_fields = (
        "form",
        "record_data",
        "fingerprint",
        "submitted_by",
        "submitted_at",
    )
    list_select_related = ("form",)

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def _form_label(self, record: Record) -> SafeText:
        """Return the name of the record's form, linked to its change page."""
        change_url = reverse("admin:modular_forms_form_change", args=(record.form_id,))
        return mark_safe(f'<a href="{change_url}">{record.form.name}</a>')  # noqa: S308

    _form_label.short_description = "Form"  # type: ignore
    _form_label.admin_order_field = "form__name"  # type: ignore


class LookupFieldRelationsInline(admin.TabularInline):
    """A read-only listing of the fields that point at a lookup source."""

    model = LookupFieldRelation
    fk_name = "lookup_source"
    extra = 0
    fields = ("field", "form", "module", "display_field", "value_field", "updated_at")
    readonly_fields = fields

    def has_add_permission(self, request: HttpRequest, obj: Any = None) -> bool:
        return False


@admin.register(LookupSource)
class LookupSourceAdmin(ModularAdminMixin, admin.ModelAdmin):
    """An admin configuration for lookup sources."""

    list_display = ("name", "id", "type", "active", "_relations_count")
    list_filter = ("type", "active")
    search_fields = ("name", "id")
    inlines = (LookupFieldRelationsInline,)

    def get_queryset(self, request: HttpRequest) -> "models.QuerySet[LookupSource]":
        return (
            super()
            .get_queryset(request)
            .annotate(models.Count("relations", distinct=True))
        )

    def _relations_count(self, lookup_source: LookupSource) -> SafeText:
        return _changelist_link(
            LookupFieldRelation,
            lookup_source.relations__count,  # type: ignore
            lookup_source__id__exact=lookup_source.pk,
        )

    _relations_count.short_description = "Fields"  # type: ignore
    _relations_count.admin_order_field = "relations__count"  # type: ignore


@admin.register(LookupFieldRelation)
class LookupFieldRelationAdmin(admin.ModelAdmin):
    """A read-only admin for lookup field relations.

    Relations are derived from lookup fields and are never edited by hand.
    """

    list_display = ("id", "lookup_source", "field", "form", "module", "updated_at")
    list_filter = ("lookup_source",)
    list_select_related = ("lookup_source", "field", "form", "module")
    search_fields = ("id",)

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj: Any = None) -> bool:
        return False
