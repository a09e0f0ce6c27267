"""Shared pytest fixtures for treeQL unit and integration tests."""
from __future__ import annotations

import pytest

from treeql import SQLBuilder
from treeql.compile.ansi import ANSI
from treeql.compile.base import qmark_placeholder
from treeql.compile.context import Binder, CompileContext


@pytest.fixture(scope="session")
def ansi() -> SQLBuilder:
    """ANSI builder shared across all tests."""
    return SQLBuilder("ansi")


@pytest.fixture(scope="session")
def mysql() -> SQLBuilder:
    return SQLBuilder("mysql")


@pytest.fixture(scope="session")
def postgres() -> SQLBuilder:
    return SQLBuilder("postgresql")


@pytest.fixture()
def ctx() -> CompileContext:
    """A fresh ANSI compile context (new binder per test)."""
    return CompileContext(dialect=ANSI, binder=Binder(qmark_placeholder))
