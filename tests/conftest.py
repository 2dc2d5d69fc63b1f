# -*- coding: utf-8 -*-

"""Pytest fixtures and configuration."""

from contextlib import _GeneratorContextManager, contextmanager
from typing import Callable, Generator, Iterator, NamedTuple, TypeVar

import pytest
from django.db import transaction

from modular_forms.models import Form, Module, Section, Subform
from tests.factories import (
    FormFactory,
    ModuleFactory,
    SectionFactory,
    SubformFactory,
)

T = TypeVar("T")
Fixture = Generator[T, None, None]
ContextManagerFixture = Fixture[Callable[..., _GeneratorContextManager]]


@pytest.fixture(scope="session")
def rollback() -> ContextManagerFixture:
    """A fixture for providing an automatic rollback context manager.

    Yields a context manager that will automatically roll back any database changes
    made within its scope.

    Particularly useful when using Hypothesis to bypass its limitations with Pytest.

    Yields:
        Callable[[], None]: A context manager that will roll back any database changes
            made within its scope.
    """

    @contextmanager
    def _rollback() -> Iterator:
        """Automatically roll back any database changes made while yielding."""
        sid = transaction.savepoint()
        try:
            yield
        finally:
            transaction.savepoint_rollback(sid)

    yield _rollback


class Tree(NamedTuple):
    """A small module tree with well-known ids.

    `module` ("m_1") holds `form` ("f_1"), whose section "sec_1" holds the
    subform "sub_1". `source_module` ("mod_42") holds `source_form`
    ("src_form"), which lookup fields can point at.
    """

    module: Module
    form: Form
    section: Section
    subform: Subform
    source_module: Module
    source_form: Form


@pytest.fixture
def tree(db: None) -> Tree:
    """Build a module tree with well-known ids.

    Args:
        db: The Django database. Unused locally, but required to enable database
            access for the fixture.

    Returns:
        Tree: The module, form, section and subform of the tree.
    """
    module = ModuleFactory(id="m_1", name="Sales")
    form = FormFactory(id="f_1", module=module, name="Orders")
    section = SectionFactory(id="sec_1", form=form, title="Order details", order=0)
    subform = SubformFactory(
        id="sub_1", section=section, name="Line items", order=0
    )

    source_module = ModuleFactory(
        id="mod_42", name="Contacts", description="People we know"
    )
    source_form = FormFactory(id="src_form", module=source_module, name="Customers")

    return Tree(module, form, section, subform, source_module, source_form)
