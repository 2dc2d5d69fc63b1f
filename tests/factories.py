# -*- coding: utf-8 -*-

"""Model factories for use in testing."""

import factory

from modular_forms.fields import LookupField, TextField


class ModuleFactory(factory.django.DjangoModelFactory):
    """A factory for generating Module records."""

    class Meta:
        model = "modular_forms.Module"

    name = factory.Faker("sentence", nb_words=3)


class FormFactory(factory.django.DjangoModelFactory):
    """A factory for generating Form records."""

    class Meta:
        model = "modular_forms.Form"

    module = factory.SubFactory(ModuleFactory)
    name = factory.Faker("sentence", nb_words=3)


class SectionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = "modular_forms.Section"

    form = factory.SubFactory(FormFactory)
    title = factory.Faker("sentence", nb_words=2)
    order = factory.Sequence(int)


class SubformFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = "modular_forms.Subform"

    section = factory.SubFactory(SectionFactory)
    name = factory.Faker("sentence", nb_words=2)
    order = factory.Sequence(int)


class FieldFactory(factory.django.DjangoModelFactory):
    """A factory for generating form Field records.

    Fields are placed directly in a section unless a subform is given.
    """

    class Meta:
        model = "modular_forms.Field"

    section = factory.Maybe(
        "subform",
        yes_declaration=None,
        no_declaration=factory.SubFactory(SectionFactory),
    )
    subform = None
    type = TextField.name
    label = factory.Faker("sentence", nb_words=3)
    order = factory.Sequence(int)


class LookupFieldFactory(FieldFactory):
    """A factory for lookup fields. Give it a source_form or source_module."""

    type = LookupField.name


class RecordFactory(factory.django.DjangoModelFactory):
    """A factory for generating Record records.

    `record_data` is stored as given, without enrichment.
    """

    class Meta:
        model = "modular_forms.Record"

    form = factory.SubFactory(FormFactory)
    record_data = factory.LazyFunction(dict)
    submitted_by = "anonymous"
