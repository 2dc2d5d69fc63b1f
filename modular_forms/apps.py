# -*- coding: utf-8 -*-

"""Modular forms.

A Django app for composing forms out of modules, sections and fields,
with lookup fields that reference records from other forms and modules.
"""

from django.apps import AppConfig


class ModularFormsConfig(AppConfig):
    """A Django app configuration for modular_forms."""

    name = "modular_forms"
    verbose_name = "Modular Forms"
    default_auto_field = "django.db.models.BigAutoField"
