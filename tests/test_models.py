# -*- coding: utf-8 -*-

"""Tests for the modular_forms models."""

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from modular_forms.models import (
    Field,
    LookupFieldRelation,
    LookupSource,
    Module,
    Record,
)
from tests.conftest import Tree
from tests.factories import (
    FieldFactory,
    FormFactory,
    LookupFieldFactory,
    ModuleFactory,
    RecordFactory,
    SectionFactory,
    SubformFactory,
)


@pytest.mark.django_db
def test_module_tree() -> None:
    """Ensure that modules derive their level and path from their parent."""
    root = ModuleFactory(id="root", name="Root")
    child = ModuleFactory(id="child", parent=root, module_type="child")
    grandchild = ModuleFactory(id="grandchild", parent=child)

    assert (root.level, root.path) == (0, "root")
    assert (child.level, child.path) == (1, "root/child")
    assert (grandchild.level, grandchild.path) == (2, "root/child/grandchild")
    assert list(root.children.all()) == [child]
    assert root.lookup_source_id == "module_root"

    # Deleting a module deletes its descendants.
    root.delete()
    assert not Module.objects.exists()


@pytest.mark.django_db
def test_generated_ids() -> None:
    """Ensure that models get generated string primary keys."""
    form = FormFactory()

    assert isinstance(form.pk, str)
    assert len(form.pk) == 25
    assert form.lookup_source_id == f"form_{form.pk}"


@pytest.mark.django_db
def test_field_single_parent(tree: Tree) -> None:
    """Ensure that a field belongs to exactly one of a section or a subform."""
    both = Field(
        type="text", label="Both", section=tree.section, subform=tree.subform
    )
    neither = Field(type="text", label="Neither")

    for field in (both, neither):
        with pytest.raises(ValidationError):
            field.full_clean()
        with pytest.raises(IntegrityError), transaction.atomic():
            field.save()

    assert not Field.objects.exists()


@pytest.mark.django_db
def test_field_properties(tree: Tree) -> None:
    """Ensure that fields expose their lookup status, slug and section."""
    field = FieldFactory(subform=tree.subform, label="Unit Price", type="number")
    lookup_field = LookupFieldFactory(section=tree.section)

    assert not field.is_lookup
    assert lookup_field.is_lookup
    assert field.slug == "unit_price"
    assert field.type_label == "Number"
    assert field.owning_section == tree.section
    assert lookup_field.owning_section == tree.section
    assert str(FieldFactory.build(label="")) == "New Field"


@pytest.mark.django_db
def test_form_all_fields(tree: Tree) -> None:
    """Ensure that forms list section fields, then subform fields, in order."""
    second_section = SectionFactory(form=tree.form, order=1)
    second_subform = SubformFactory(section=tree.section, order=5)

    a = FieldFactory(section=tree.section, order=1)
    b = FieldFactory(section=tree.section, order=0)
    c = FieldFactory(subform=tree.subform, order=0)
    d = FieldFactory(subform=second_subform, order=0)
    e = FieldFactory(section=second_section, order=0)

    # Fields of other forms are not included.
    FieldFactory()

    assert tree.form.all_fields() == [b, a, c, d, e]


@pytest.mark.django_db
def test_record_values(tree: Tree) -> None:
    """Ensure that record values unwrap enriched entries."""
    record = RecordFactory(
        form=tree.form,
        record_data={
            "fld_1": {"value": "Alice", "label": "Name", "type": "text"},
            "fld_2": 42,
        },
    )

    assert record.values == {"fld_1": "Alice", "fld_2": 42}


@pytest.mark.django_db
def test_record_fingerprint_unique(tree: Tree) -> None:
    """Ensure that a form cannot store two records with the same fingerprint."""
    RecordFactory(form=tree.form, fingerprint="a" * 64)
    RecordFactory(form=tree.source_form, fingerprint="a" * 64)

    # Records without a fingerprint never conflict.
    RecordFactory(form=tree.form, fingerprint=None)
    RecordFactory(form=tree.form, fingerprint=None)

    with pytest.raises(IntegrityError), transaction.atomic():
        RecordFactory(form=tree.form, fingerprint="a" * 64)

    assert Record.objects.count() == 4


@pytest.mark.django_db
def test_lookup_source_backing(tree: Tree) -> None:
    """Ensure that lookup sources are backed by exactly what their type says."""
    LookupSource.objects.create(id="countries", name="Countries", type="static")
    LookupSource.objects.create(
        id="form_src_form", name="Customers", type="form", source_form=tree.source_form
    )

    invalid = [
        LookupSource(id="x1", name="x", type="form"),
        LookupSource(id="x2", name="x", type="module", source_form=tree.source_form),
        LookupSource(id="x3", name="x", type="static", source_module=tree.module),
    ]
    for lookup_source in invalid:
        with pytest.raises(IntegrityError), transaction.atomic():
            lookup_source.save()

    assert LookupSource.objects.count() == 2


@pytest.mark.django_db
def test_relation_cascades(tree: Tree) -> None:
    """Ensure that relations are deleted with their field or their source."""
    lookup_source = LookupSource.objects.create(
        id="form_src_form", name="Customers", type="form", source_form=tree.source_form
    )

    def relate(field: Field) -> LookupFieldRelation:
        return LookupFieldRelation.objects.create(
            id=LookupFieldRelation.make_id(lookup_source.pk, field.pk),
            lookup_source=lookup_source,
            field=field,
            form=tree.form,
            module=tree.module,
        )

    first = LookupFieldFactory(section=tree.section, source_form="src_form")
    second = LookupFieldFactory(section=tree.section, source_form="src_form")
    relation = relate(first)
    relate(second)

    assert relation.pk == f"lfr_form_src_form_{first.pk}"

    first.delete()
    assert list(LookupFieldRelation.objects.values_list("field_id", flat=True)) == [
        second.pk
    ]

    lookup_source.delete()
    assert not LookupFieldRelation.objects.exists()
    assert Field.objects.filter(pk=second.pk).exists()

    # Deleting the backing form deletes its sources.
    LookupSource.objects.create(
        id="form_src_form", name="Customers", type="form", source_form=tree.source_form
    )
    tree.source_form.delete()
    assert not LookupSource.objects.exists()


def test_make_id() -> None:
    """Ensure that relation ids are derived from the source and field ids."""
    assert LookupFieldRelation.make_id("module_mod_42", "fld_1") == (
        "lfr_module_mod_42_fld_1"
    )
