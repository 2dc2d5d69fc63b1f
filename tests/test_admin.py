# -*- coding: utf-8 -*-

"""Tests for the modular_forms admin."""

import logging

import pytest
from django.contrib import admin
from django.test import Client, RequestFactory
from django.urls import reverse

from modular_forms.lookups import upsert_relation
from modular_forms.models import (
    Field,
    Form,
    LookupFieldRelation,
    LookupSource,
    Module,
    Record,
)
from tests.conftest import Tree
from tests.factories import LookupFieldFactory, RecordFactory


@pytest.mark.django_db
@pytest.mark.parametrize(
    "model", [Module, Form, Field, Record, LookupSource, LookupFieldRelation]
)
def test_changelists(admin_client: Client, tree: Tree, model: type) -> None:
    """Ensure that every model can be browsed in the admin."""
    RecordFactory(form=tree.source_form)
    upsert_relation(
        LookupFieldFactory(id="fld_1", section=tree.section, source_form="src_form")
    )

    opts = model._meta
    response = admin_client.get(
        reverse(f"admin:{opts.app_label}_{opts.model_name}_changelist")
    )

    assert response.status_code == 200


@pytest.mark.django_db
def test_change_pages(admin_client: Client, tree: Tree) -> None:
    """Ensure that forms and lookup sources can be inspected."""
    upsert_relation(
        LookupFieldFactory(id="fld_1", section=tree.section, source_form="src_form")
    )

    for url in (
        reverse("admin:modular_forms_form_change", args=["f_1"]),
        reverse("admin:modular_forms_field_change", args=["fld_1"]),
        reverse("admin:modular_forms_lookupsource_change", args=["form_src_form"]),
    ):
        assert admin_client.get(url).status_code == 200

    # Records and relations cannot be added by hand.
    for name in ("record", "lookupfieldrelation"):
        url = reverse(f"admin:modular_forms_{name}_add")
        assert admin_client.get(url).status_code == 403


@pytest.mark.django_db
def test_field_admin_refreshes_relation(
    admin_user, rf: RequestFactory, tree: Tree, caplog: pytest.LogCaptureFixture
) -> None:
    """Ensure that saving a field in the admin refreshes or prunes its relations."""
    model_admin = admin.site._registry[Field]
    request = rf.post("/")
    request.user = admin_user

    field = LookupFieldFactory.build(
        id="fld_1", section=tree.section, source_module="mod_42"
    )
    model_admin.save_model(request, field, None, False)

    relation = LookupFieldRelation.objects.get()
    assert relation.pk == "lfr_module_mod_42_fld_1"
    assert relation.module_id == "m_1"

    # Pointing the field at another source replaces the relation.
    field = Field.objects.get(pk="fld_1")
    field.source_module = None
    field.source_form = "src_form"
    model_admin.save_model(request, field, None, True)
    assert list(LookupFieldRelation.objects.values_list("pk", flat=True)) == [
        "lfr_form_src_form_fld_1"
    ]

    # A dangling source keeps the last good relation, and is logged.
    field.source_form = "frm_404"
    with caplog.at_level(logging.WARNING, logger="modular_forms.admin"):
        model_admin.save_model(request, field, None, True)
    assert "Field fld_1 was saved without a lookup relation" in caplog.text
    assert LookupFieldRelation.objects.get().pk == "lfr_form_src_form_fld_1"

    # A field that stops being a lookup loses its relations.
    field.type = "text"
    field.source_form = None
    model_admin.save_model(request, field, None, True)
    assert not LookupFieldRelation.objects.exists()
