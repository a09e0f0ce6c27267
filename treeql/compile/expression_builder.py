"""Expression and predicate SQL compilers.

``ExpressionCompiler`` walks arbitrary query subtrees: identifiers, bound
values, column projections and boolean filters.  It holds nothing but a
:class:`~treeql.compile.context.CompileContext`, so operator handlers build
one on demand (``ExpressionCompiler(ctx)``) whenever they need to recurse.

Comparison operators (``$eq``, ``$gt``, ``$in``, ...) are ordinary registry
entries created by :func:`comparison` and friends; the predicate compiler
resolves them through the active dialect like any other operator.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from treeql.compile.context import CompileContext
from treeql.compile.registry import OperatorHandler
from treeql.errors import UnknownOperatorError, ValidationError

#: SQL joiner for each boolean combinator.
COMBINATORS: dict[str, str] = {
    "$and": " AND ",
    "$or": " OR ",
}

#: Binary comparison operators: ``$key -> SQL operator``.
COMPARISONS: dict[str, str] = {
    "$eq": "=",
    "$ne": "!=",
    "$gt": ">",
    "$gte": ">=",
    "$lt": "<",
    "$lte": "<=",
    "$like": "LIKE",
}

_SCALARS = (str, int, float, bool)


def _is_flag(spec: Any, on: bool) -> bool:
    """``true``/``1`` (or ``false``/``0``) in a projection or alias position."""
    return spec is on or (type(spec) is int and spec == int(on))


class ExpressionCompiler:
    """Compiles query subtrees to SQL fragments.

    Args:
        ctx: Compile context for the current run.
    """

    def __init__(self, ctx: CompileContext) -> None:
        self._ctx = ctx

    @property
    def ctx(self) -> CompileContext:
        return self._ctx

    # ------------------------------------------------------------------
    # Root
    # ------------------------------------------------------------------

    def compile(self, query: Any) -> str:
        """Compile a root query node such as ``{"$select": {...}}``.

        Raises:
            ValidationError: If ``query`` is not a single-key object.
            UnknownOperatorError: If the key is not a statement of the
                active dialect.
        """
        if not isinstance(query, Mapping) or len(query) != 1:
            raise ValidationError(
                "A query must be an object with exactly one statement key "
                "(e.g. '$select').",
                details={"keys": list(query) if isinstance(query, Mapping) else None},
            )
        (name, body), = query.items()
        dialect = self._ctx.dialect
        if not dialect.is_statement(name):
            reason = None
            if name in dialect.registry:
                reason = "It is not a statement and cannot be used at the top level."
            raise UnknownOperatorError(str(name), dialect.name, reason=reason)
        return self._ctx.invoke(name, body, query, None)

    # ------------------------------------------------------------------
    # Identifiers and values
    # ------------------------------------------------------------------

    def identifier(self, name: Any) -> str:
        """Quote ``name`` as an identifier."""
        return self._ctx.quote(name)

    def bind(self, value: Any) -> str:
        """Bind ``value`` and return its placeholder."""
        return self._ctx.bind(value)

    def identifier_list(self, node: Any, operator: str | None = None) -> str:
        """Compile a column or table list.

        Accepts a string, a list of strings / alias objects, or an alias
        object ``{"people": {"$as": "p"}}`` (``True`` keeps a bare name).
        """
        if isinstance(node, str):
            return self.identifier(node)
        if isinstance(node, (list, tuple)):
            if not node:
                raise ValidationError("Identifier list must not be empty.", operator=operator)
            return ", ".join(self.identifier_list(item, operator) for item in node)
        if isinstance(node, Mapping):
            return ", ".join(self._aliased_identifier(name, spec, operator) for name, spec in node.items())
        raise ValidationError(
            f"Expected an identifier or list of identifiers, got {type(node).__name__}.",
            operator=operator,
        )

    def _aliased_identifier(self, name: str, spec: Any, operator: str | None) -> str:
        if _is_flag(spec, True):
            return self.identifier(name)
        if isinstance(spec, Mapping) and set(spec) == {"$as"}:
            return f"{self.identifier(name)} AS {self.identifier(spec['$as'])}"
        raise ValidationError(
            f"Identifier '{name}' expects true or {{'$as': alias}}, got {spec!r}.",
            operator=operator,
        )

    def value_expression(self, node: Any, operator: str | None = None) -> str:
        """Compile a value position.

        Scalars (and ``None``) are bound; an object must carry exactly one
        operator key (``$val``, an aggregate, a nested ``$select``, ...).
        Nested statements are wrapped in parentheses.
        """
        if node is None or isinstance(node, _SCALARS):
            return self.bind(node)
        if isinstance(node, Mapping):
            if len(node) != 1:
                raise ValidationError(
                    f"A value expression takes exactly one operator, got {list(node)}.",
                    operator=operator,
                )
            (name, value), = node.items()
            if not isinstance(name, str) or not name.startswith("$"):
                raise ValidationError(
                    f"Unexpected key {name!r} in value expression.", operator=operator
                )
            sql = self._ctx.invoke(name, value, node, None)
            if self._ctx.dialect.is_statement(name):
                return f"({sql})"
            return sql
        raise ValidationError(
            f"Unsupported value {node!r} ({type(node).__name__}).", operator=operator
        )

    # ------------------------------------------------------------------
    # Column projection
    # ------------------------------------------------------------------

    def projection(self, node: Any) -> str:
        """Compile the ``SELECT`` column list (``$columns``)."""
        if isinstance(node, str):
            return self.identifier(node)
        if isinstance(node, (list, tuple)):
            parts: list[str] = []
            for item in node:
                if isinstance(item, str):
                    parts.append(self.identifier(item))
                elif isinstance(item, Mapping):
                    parts.extend(self._projection_entries(item))
                else:
                    raise ValidationError(
                        f"Column entries must be strings or objects, got {item!r}.",
                        operator="$columns",
                    )
        elif isinstance(node, Mapping):
            parts = self._projection_entries(node)
        else:
            raise ValidationError(
                f"'$columns' expects a list or object, got {type(node).__name__}.",
                operator="$columns",
            )
        if not parts:
            raise ValidationError("'$columns' selects no columns.", operator="$columns")
        return ", ".join(parts)

    def _projection_entries(self, node: Mapping[str, Any]) -> list[str]:
        parts: list[str] = []
        for name, spec in node.items():
            if isinstance(name, str) and name.startswith("$"):
                raise ValidationError(
                    f"Unexpected operator {name!r} in '$columns'; wrap it in an alias.",
                    operator="$columns",
                )
            entry = self._projection_entry(name, spec)
            if entry:
                parts.append(entry)
        return parts

    def _projection_entry(self, name: str, spec: Any) -> str:
        # true / 1 keep the column, false / 0 drop it, other scalars are values
        if _is_flag(spec, True):
            return self.identifier(name)
        if _is_flag(spec, False):
            return ""
        if spec is None or isinstance(spec, _SCALARS):
            return f"{self.bind(spec)} AS {self.identifier(name)}"
        if not isinstance(spec, Mapping):
            raise ValidationError(
                f"Column '{name}' has an unsupported spec {spec!r}.", operator="$columns"
            )

        if "$as" in spec:
            alias = spec["$as"]
            rest = {key: value for key, value in spec.items() if key != "$as"}
            expression = self.value_expression(rest, "$columns") if rest else self.identifier(name)
            return f"{expression} AS {self.identifier(alias)}"
        return f"{self.value_expression(spec, '$columns')} AS {self.identifier(name)}"

    # ------------------------------------------------------------------
    # Boolean filters
    # ------------------------------------------------------------------

    def condition(self, node: Any, parent: str | None = None) -> str:
        """Compile a filter object (``$where`` / ``$having`` body).

        Keys of one object are joined with ``AND``.  ``parent`` is the
        combinator the object sits in; a group of a different kind than its
        parent is parenthesized, a group of the same kind is flattened.
        """
        if not isinstance(node, Mapping) or not node:
            raise ValidationError(
                f"A filter must be a non-empty object, got {node!r}.", operator="$where"
            )
        joiner = "$and" if len(node) > 1 else parent
        parts = [self._predicate(key, value, node, joiner) for key, value in node.items()]
        return self.group("$and", parts, parent)

    def combine(self, kind: str, items: Any, parent: str | None) -> str:
        """Compile ``$and`` / ``$or`` over a list of filter objects."""
        if not isinstance(items, (list, tuple)) or not items:
            raise ValidationError(f"'{kind}' expects a non-empty list.", operator=kind)
        parts = [self.condition(item, kind) for item in items]
        return self.group(kind, parts, parent)

    def group(self, kind: str, parts: list[str], parent: str | None) -> str:
        """Join ``parts`` with ``kind``, parenthesized when ``parent`` differs."""
        sql = COMBINATORS[kind].join(parts)
        if len(parts) > 1 and parent is not None and parent != kind:
            return f"({sql})"
        return sql

    def _predicate(self, key: Any, value: Any, node: Mapping[str, Any], parent: str | None) -> str:
        if not isinstance(key, str):
            raise ValidationError(f"Filter keys must be strings, got {key!r}.", operator="$where")
        if key in COMBINATORS:
            return self.combine(key, value, parent)
        if key.startswith("$"):
            if not self._ctx.dialect.is_predicate(key):
                raise UnknownOperatorError(
                    key, self._ctx.dialect.name, reason="Not a filter operator."
                )
            return self._ctx.within(parent).invoke(key, value, node, None)
        return self.column_predicate(key, value, parent)

    def column_predicate(self, column: str, spec: Any, parent: str | None = None) -> str:
        """Compile the filter for one column.

        ``value`` → ``= ?``, ``None`` → ``IS NULL``, a list → ``IN (...)``,
        an object → one comparison per operator key, joined with ``AND``.
        """
        if spec is None:
            return f"{self.identifier(column)} IS NULL"
        if isinstance(spec, (list, tuple)):
            return self._ctx.invoke("$in", spec, {"$in": spec}, column)
        if not isinstance(spec, Mapping):
            return self._ctx.invoke("$eq", spec, {"$eq": spec}, column)
        if not spec:
            raise ValidationError(f"Filter for '{column}' is empty.", operator="$where")

        parts: list[str] = []
        for op, value in spec.items():
            if not isinstance(op, str) or not op.startswith("$"):
                raise ValidationError(
                    f"Filter for '{column}' expects operator keys, got {op!r}.",
                    operator="$where",
                )
            parts.append(self._ctx.invoke(op, value, spec, column))
        return self.group("$and", parts, parent)


# ---------------------------------------------------------------------------
# Comparison operator handlers
# ---------------------------------------------------------------------------


def _column(identifier: str | None, operator: str, ctx: CompileContext) -> str:
    if identifier is None:
        raise ValidationError(f"'{operator}' must be applied to a column.", operator=operator)
    return ctx.quote(identifier)


def comparison(operator: str, sql_operator: str) -> OperatorHandler:
    """Handler factory for ``column <op> value``."""

    def handler(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
        left = _column(identifier, operator, ctx)
        if value is None and operator in ("$eq", "$ne"):
            return f"{left} IS {'NOT ' if operator == '$ne' else ''}NULL"
        right = ExpressionCompiler(ctx).value_expression(value, operator)
        return f"{left} {sql_operator} {right}"

    handler.__name__ = f"compare_{operator.lstrip('$')}"
    return handler


def membership(operator: str, sql_operator: str) -> OperatorHandler:
    """Handler factory for ``column IN (...)`` / ``NOT IN (...)``.

    Accepts a non-empty list of values or a nested ``{"$select": ...}``.
    """

    def handler(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
        left = _column(identifier, operator, ctx)
        if isinstance(value, Mapping):
            return f"{left} {sql_operator} {ExpressionCompiler(ctx).value_expression(value, operator)}"
        if not isinstance(value, (list, tuple)) or not value:
            raise ValidationError(f"'{operator}' expects a non-empty list.", operator=operator)
        expr = ExpressionCompiler(ctx)
        values = ", ".join(expr.value_expression(item, operator) for item in value)
        return f"{left} {sql_operator} ({values})"

    handler.__name__ = f"membership_{operator.lstrip('$')}"
    return handler


def between(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``column BETWEEN ? AND ?`` from a ``[low, high]`` pair."""
    left = _column(identifier, "$between", ctx)
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValidationError("'$between' expects [low, high].", operator="$between")
    expr = ExpressionCompiler(ctx)
    low = expr.value_expression(value[0], "$between")
    high = expr.value_expression(value[1], "$between")
    return f"{left} BETWEEN {low} AND {high}"


def is_null(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``column IS NULL`` for ``true``, ``IS NOT NULL`` for ``false``."""
    left = _column(identifier, "$isNull", ctx)
    if not isinstance(value, bool):
        raise ValidationError("'$isNull' must be a Boolean.", operator="$isNull")
    return f"{left} IS NULL" if value else f"{left} IS NOT NULL"


def negate(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``NOT (<filter>)``."""
    return f"NOT ({ExpressionCompiler(ctx).condition(value)})"
