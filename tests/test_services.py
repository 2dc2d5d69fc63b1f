# -*- coding: utf-8 -*-

"""Tests for the field write services."""

import logging

import pytest
from django.core.exceptions import ValidationError
from django.db import DatabaseError

from modular_forms.models import Field, LookupFieldRelation, LookupSource
from modular_forms.services import (
    create_field,
    delete_field,
    flatten_lookup,
    update_field,
)
from tests.conftest import Tree


def test_flatten_lookup() -> None:
    """Ensure that the nested lookup configuration fills the flat columns."""
    assert flatten_lookup({"label": "x"}) == {"label": "x"}

    attrs = flatten_lookup(
        {
            "lookup": {
                "sourceId": "module_mod_42",
                "fieldMapping": {"display": "name", "value": "email"},
                "multiple": True,
            },
        }
    )
    assert attrs["source_module"] == "mod_42"
    assert attrs["source_form"] is None
    assert attrs["display_field"] == "name"
    assert attrs["value_field"] == "email"
    assert attrs["multiple"] is True
    assert "searchable" not in attrs

    attrs = flatten_lookup({"lookup": {"sourceId": "form_src_form"}})
    assert (attrs["source_form"], attrs["source_module"]) == ("src_form", None)

    # Opaque ids and explicit pointers leave the pointers alone.
    assert "source_form" not in flatten_lookup({"lookup": {"sourceId": "countries"}})
    attrs = flatten_lookup(
        {
            "lookup": {"sourceId": "form_src_form", "fieldMapping": {"display": "x"}},
            "source_form": "other",
            "display_field": "name",
        }
    )
    assert attrs["source_form"] == "other"
    assert attrs["display_field"] == "name"

    # Pointers sent as null do not count as set.
    attrs = flatten_lookup(
        {"lookup": {"sourceId": "form_src_form"}, "source_form": None}
    )
    assert (attrs["source_form"], attrs["source_module"]) == ("src_form", None)


@pytest.mark.django_db
def test_create_field(tree: Tree) -> None:
    """Ensure that creating a lookup field creates its relation."""
    field = create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        lookup={"sourceId": "form_src_form", "fieldMapping": {"display": "fld_name"}},
    )

    assert Field.objects.get(pk="fld_1").source_form == "src_form"
    relation = field.lookup_relations.get()
    assert relation.pk == "lfr_form_src_form_fld_1"
    assert relation.display_field == "fld_name"
    assert (relation.form_id, relation.module_id) == ("f_1", "m_1")

    text_field = create_field(subform=tree.subform, type="text", label="Notes")
    assert not text_field.lookup_relations.exists()


@pytest.mark.django_db
def test_create_field_missing_source(
    tree: Tree, caplog: pytest.LogCaptureFixture
) -> None:
    """Ensure that a lookup field with a dangling source is still created."""
    with caplog.at_level(logging.WARNING, logger="modular_forms"):
        field = create_field(
            section=tree.section, type="lookup", label="Broken", source_form="frm_404"
        )

    assert Field.objects.filter(pk=field.pk).exists()
    assert not LookupFieldRelation.objects.exists()
    assert not LookupSource.objects.exists()
    assert any(field.pk in r.getMessage() for r in caplog.records)


@pytest.mark.django_db
def test_create_field_invalid(tree: Tree) -> None:
    """Ensure that invalid fields are rejected."""
    with pytest.raises(ValidationError) as excinfo:
        create_field(section=tree.section, subform=tree.subform, label="Both")
    assert "type" in excinfo.value.message_dict

    with pytest.raises(ValidationError):
        create_field(type="text", label="Orphan")

    with pytest.raises(ValidationError):
        create_field(section=tree.section, type="nonsense", label="x")

    assert not Field.objects.exists()


@pytest.mark.django_db
def test_create_field_null_pointers(tree: Tree) -> None:
    """Ensure that a reserved source id is used when both pointers are null."""
    field = create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        lookup={"sourceId": "form_src_form"},
        source_form=None,
        source_module=None,
    )

    assert field.source_form == "src_form"
    assert LookupFieldRelation.objects.get().pk == "lfr_form_src_form_fld_1"


@pytest.mark.django_db
def test_create_field_rolls_back(tree: Tree, mocker) -> None:
    """Ensure that a failed relation write rolls back the field."""
    mocker.patch.object(
        LookupFieldRelation.objects, "update_or_create", side_effect=DatabaseError
    )

    with pytest.raises(DatabaseError):
        create_field(
            section=tree.section, type="lookup", label="x", source_form="src_form"
        )

    assert not Field.objects.exists()
    assert not LookupSource.objects.exists()


@pytest.mark.django_db
def test_update_field(tree: Tree) -> None:
    """Ensure that partial updates keep the stored lookup configuration."""
    create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        source_form="src_form",
        display_field="fld_name",
    )

    field = update_field("fld_1", label="Client", multiple=True)

    assert field.label == "Client"
    relation = LookupFieldRelation.objects.get()
    assert relation.pk == "lfr_form_src_form_fld_1"
    assert relation.display_field == "fld_name"
    assert relation.multiple

    # Moving the field to the subform keeps it in the same form.
    update_field("fld_1", section=None, subform=tree.subform)
    assert LookupFieldRelation.objects.get().form_id == "f_1"


@pytest.mark.django_db
def test_update_field_changes_source(tree: Tree) -> None:
    """Ensure that pointing a field at a new source replaces its relation."""
    create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        source_form="src_form",
    )

    update_field("fld_1", lookup={"sourceId": "module_mod_42"})

    field = Field.objects.get(pk="fld_1")
    assert (field.source_module, field.source_form) == ("mod_42", None)
    assert list(LookupFieldRelation.objects.values_list("pk", flat=True)) == [
        "lfr_module_mod_42_fld_1"
    ]
    # The old source stays; other fields may still use it.
    assert LookupSource.objects.filter(pk="form_src_form").exists()

    # A dangling source keeps the last good relation.
    update_field("fld_1", lookup=None, source_module="mod_404")
    assert list(LookupFieldRelation.objects.values_list("pk", flat=True)) == [
        "lfr_module_mod_42_fld_1"
    ]


@pytest.mark.django_db
def test_update_field_changes_type(tree: Tree) -> None:
    """Ensure that a field that stops being a lookup loses its relations."""
    create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        source_form="src_form",
    )

    update_field("fld_1", type="text")

    assert not LookupFieldRelation.objects.exists()


@pytest.mark.django_db
def test_update_field_invalid(tree: Tree) -> None:
    """Ensure that invalid updates are rejected and leave the field as it was."""
    create_field(id="fld_1", section=tree.section, type="text", label="Name")

    with pytest.raises(ValidationError):
        update_field("fld_1", subform=tree.subform)

    with pytest.raises(Field.DoesNotExist):
        update_field("fld_404", label="x")

    field = Field.objects.get(pk="fld_1")
    assert (field.section_id, field.subform_id) == ("sec_1", None)


@pytest.mark.django_db
def test_delete_field(tree: Tree) -> None:
    """Ensure that deleting a field deletes its relations."""
    create_field(
        id="fld_1",
        section=tree.section,
        type="lookup",
        label="Customer",
        source_form="src_form",
    )

    delete_field("fld_1")

    assert not Field.objects.exists()
    assert not LookupFieldRelation.objects.exists()
    assert LookupSource.objects.filter(pk="form_src_form").exists()

    with pytest.raises(Field.DoesNotExist):
        delete_field("fld_1")
