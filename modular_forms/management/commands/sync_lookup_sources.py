# -*- coding: utf-8 -*-
from argparse import ArgumentParser
from typing import Any

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Q

from modular_forms.fields import LookupField
from modular_forms.lookups import ensure_source, upsert_relation
from modular_forms.models import Field, Form, Module


class Command(BaseCommand):
    help = "Creates lookup sources for modules and forms, and refreshes relations."

    def add_arguments(self, parser: ArgumentParser) -> None:
        """Parse command arguments.

        Args:
            parser: The argument parser.
        """
        parser.add_argument(
            "--module",
            dest="module_id",
            help="Only sync this module, its forms and their lookup fields.",
        )
        parser.add_argument(
            "--form",
            dest="form_id",
            help="Only sync this form and its lookup fields.",
        )
        parser.add_argument(
            "--relations",
            action="store_true",
            help="Also refresh the lookup relation of every lookup field.",
        )

    @transaction.atomic
    def handle(self, *args: Any, **options: Any) -> None:
        """Materialize lookup sources, and optionally refresh relations.

        Args:
            args: Other arguments passed to handle.
            options: Parsed arguments to the command.
        """
        module_id = options.get("module_id")
        form_id = options.get("form_id")

        modules = Module.objects.all()
        forms = Form.objects.all()
        fields = Field.objects.filter(type=LookupField.name)

        if module_id:
            modules = modules.filter(pk=module_id)
            forms = forms.filter(module_id=module_id)
            fields = fields.filter(
                Q(section__form__module_id=module_id)
                | Q(subform__section__form__module_id=module_id)
            )
        if form_id:
            modules = modules.none() if not module_id else modules
            forms = forms.filter(pk=form_id)
            fields = fields.filter(
                Q(section__form_id=form_id) | Q(subform__section__form_id=form_id)
            )

        sources = 0
        for module in modules:
            ensure_source(module.lookup_source_id)
            sources += 1
        for form in forms:
            ensure_source(form.lookup_source_id)
            sources += 1

        self.stdout.write(f"Synced {sources} lookup sources.")

        if options.get("relations"):
            synced = sum(1 for field in fields if upsert_relation(field) is not None)
            self.stdout.write(
                f"Synced {synced} of {fields.count()} lookup field relations."
            )

        self.stdout.write(self.style.SUCCESS("Done!"))
