# -*- coding: utf-8 -*-
from django.urls import path

from . import views

app_name = "modular_forms"
urlpatterns = [
    path("lookup/sources", views.lookup_sources, name="lookup_sources"),
    path("lookup/fields", views.lookup_fields, name="lookup_fields"),
    path("lookup/data", views.lookup_data, name="lookup_data"),
    path(
        "forms/<str:form_id>/lookup-sources",
        views.form_lookup_sources,
        name="form_lookup_sources",
    ),
    path(
        "forms/<str:form_id>/linked-records",
        views.form_linked_records,
        name="form_linked_records",
    ),
    path("forms/<str:form_id>/submit", views.submit_form, name="submit_form"),
    path("fields", views.fields, name="fields"),
    path("fields/<str:field_id>", views.field_detail, name="field_detail"),
    path("field-types", views.field_types, name="field_types"),
]
