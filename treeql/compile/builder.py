"""Query tree → SQL compilation entry point.

``QueryBuilder`` binds a composed :class:`~treeql.compile.dialect.Dialect`
and drives one compilation per :meth:`~QueryBuilder.build` call.

Runtime context sharing
-----------------------
A fresh :class:`~treeql.compile.context.Binder` and
:class:`~treeql.compile.context.CompileContext` are created per ``build()``
call and threaded through every handler, nested sub-select and template
render of that call.  Placeholder numbering (``$1``, ``$2``, ...) is
therefore global to the statement, and a builder can be shared between
threads because it holds nothing but the immutable dialect.
"""
from __future__ import annotations

from typing import Any

import structlog

from treeql.compile.base import QueryResult
from treeql.compile.context import Binder, CompileContext
from treeql.compile.dialect import Dialect
from treeql.compile.expression_builder import ExpressionCompiler
from treeql.errors import TreeQLError

logger = structlog.get_logger(__name__)


class QueryBuilder:
    """Compiles query trees to parameterized SQL for one dialect.

    Args:
        dialect: A composed, frozen dialect.
    """

    def __init__(self, dialect: Dialect) -> None:
        self._dialect = dialect

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, query: Any) -> QueryResult:
        """Compile ``query`` to parameterized SQL.

        Args:
            query: Root query object, e.g. ``{"$select": {...}}``.

        Returns:
            :class:`~treeql.compile.base.QueryResult` with the ``sql``
            string and the bound ``values`` in placeholder order.

        Raises:
            ValidationError: If an operand has the wrong shape.
            UnknownOperatorError: If a ``$``-key is not supported by the
                dialect.
            MissingRequiredFieldError: If a statement lacks a mandatory key.
        """
        binder = Binder(self._dialect.placeholder)
        ctx = CompileContext(dialect=self._dialect, binder=binder)
        try:
            sql = ExpressionCompiler(ctx).compile(query)
        except TreeQLError as exc:
            logger.debug(
                "query.compile_failed",
                dialect=self._dialect.name,
                error=type(exc).__name__,
                code=getattr(exc, "code", None),
            )
            raise

        result = QueryResult(sql=sql, values=binder.values, dialect=self._dialect.name)
        logger.debug("query.compiled", dialect=self._dialect.name, values=len(binder))
        return result
