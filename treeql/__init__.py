"""treeQL: JSON-style query trees compiled to parameterized SQL.

Build Queries from data, not from strings.

Public API
----------
``SQLBuilder``
    Compiles query trees for one dialect (``ansi``, ``mysql``,
    ``postgresql``).

``build``
    One-shot convenience wrapper around ``SQLBuilder(dialect).build``.

Re-exported types
-----------------
``QueryResult``, ``BuilderOptions``, ``Dialect``, ``DialectBuilder``,
``DialectFactory`` and all error classes.

Extensibility
-------------
New dialects are composed on top of an existing one and registered with
:class:`DialectFactory`::

    from treeql import ANSI, DialectBuilder, DialectFactory, DoubleQuoteQuoter

    builder = DialectBuilder("sqlite", base=ANSI)
    builder.quoter(DoubleQuoteQuoter())
    DialectFactory.register_dialect(builder.build())

After registration ``SQLBuilder("sqlite")`` picks it up automatically.
"""
from __future__ import annotations

from typing import Any

import structlog

from treeql.compile.ansi import ANSI
from treeql.compile.base import (
    BacktickQuoter,
    DoubleQuoteQuoter,
    QueryResult,
    Quoter,
)
from treeql.compile.builder import QueryBuilder
from treeql.compile.dialect import Dialect, DialectBuilder
from treeql.compile.mysql import MYSQL
from treeql.compile.postgres import POSTGRES
from treeql.compile.registry import DialectFactory, OperatorRegistry
from treeql.config import BASE_DIALECT, BuilderOptions
from treeql.errors import (
    CompilationError,
    DialectConfigError,
    MissingRequiredFieldError,
    TemplateSyntaxError,
    TreeQLError,
    UnknownDialectError,
    UnknownOperatorError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Register built-in dialects with DialectFactory
# ---------------------------------------------------------------------------

DialectFactory.register_dialect(ANSI)
DialectFactory.register_dialect(MYSQL)
DialectFactory.register_dialect(POSTGRES, "postgres")

__all__ = [
    # Core
    "SQLBuilder",
    "build",
    "QueryResult",
    # Configuration
    "BuilderOptions",
    # Dialects
    "ANSI",
    "MYSQL",
    "POSTGRES",
    "Dialect",
    "DialectBuilder",
    "DialectFactory",
    "OperatorRegistry",
    "QueryBuilder",
    "Quoter",
    "BacktickQuoter",
    "DoubleQuoteQuoter",
    # Errors
    "TreeQLError",
    "CompilationError",
    "ValidationError",
    "UnknownOperatorError",
    "MissingRequiredFieldError",
    "TemplateSyntaxError",
    "DialectConfigError",
    "UnknownDialectError",
]


class SQLBuilder:
    """Compiles query trees for a registered dialect.

    Example::

        builder = SQLBuilder("mysql")
        result = builder.build({"$select": {"$from": "people", "$where": {"id": 1}}})
        cursor.execute(result.sql, result.values)

    Args:
        dialect: Registered dialect name (case-insensitive).  Overrides
            ``options.dialect`` when both are given.
        options: Builder options; defaults to ``BuilderOptions()``.

    Raises:
        UnknownDialectError: If the dialect is not registered and
            ``options.fallback_to_ansi`` is not set.
    """

    def __init__(self, dialect: str | None = None, options: BuilderOptions | None = None) -> None:
        options = options or BuilderOptions()
        if dialect is not None:
            options = BuilderOptions.parse({**options.model_dump(), "dialect": dialect})
        self._options = options
        self._builder = QueryBuilder(self._resolve(options))

    @staticmethod
    def _resolve(options: BuilderOptions) -> Dialect:
        try:
            return DialectFactory.get(options.dialect)
        except UnknownDialectError:
            if not options.fallback_to_ansi:
                raise
            logger.warning(
                "dialect.fallback", requested=options.dialect, dialect=BASE_DIALECT
            )
            return DialectFactory.get(BASE_DIALECT)

    @property
    def dialect(self) -> Dialect:
        return self._builder.dialect

    @property
    def options(self) -> BuilderOptions:
        return self._options

    def build(self, query: Any) -> QueryResult:
        """Compile ``query``; see :meth:`QueryBuilder.build`."""
        return self._builder.build(query)


def build(query: Any, dialect: str = BASE_DIALECT) -> QueryResult:
    """Compile ``query`` for ``dialect`` in one call.

    Args:
        query: Root query object, e.g. ``{"$select": {...}}``.
        dialect: Registered dialect name.

    Returns:
        ``QueryResult`` with ``sql``, ``values`` and ``dialect``.
    """
    return SQLBuilder(dialect).build(query)
