"""Clause-level operator handlers.

Every function here has the operator handler signature
``(value, node, identifier, ctx) -> str`` and is installed into the ANSI
registry by :mod:`treeql.compile.ansi`; dialects override individual keys.
Statement keywords (``SELECT``, ``WHERE``, ``ORDER BY``, ...) come from the
statement templates, so each handler renders only its operand.

Handlers
--------
flag             Boolean switches (``$distinct``, ``$notNull``, ...)
val              ``$val``: a bound value
aggregate        ``$sum`` / ``$count`` / ``$avg`` / ``$min`` / ``$max``
columns          ``$columns``: the projection list
table            ``$from`` / ``$table``
where            ``$where`` / ``$having`` filters
expression       ``$expr``: ``<expression> <op> <value>`` filters
group_by         ``$groupBy``
sort             ``$sort``
limit / offset   ``$limit`` / ``$offset``
assignments      ``$set`` (UPDATE)
documents        ``$documents`` (INSERT)
"""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from treeql.compile.context import CompileContext
from treeql.compile.expression_builder import COMPARISONS, ExpressionCompiler
from treeql.compile.registry import OperatorHandler
from treeql.errors import ValidationError

_SCALARS = (str, int, float, bool)


class SortDirection(str, Enum):
    """The two sort directions every ``$sort`` spelling normalizes to."""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def normalize(cls, raw: Any) -> SortDirection:
        """Map ``{'$asc': true}``, ``'ASC'`` or ``1`` (and their DESC forms).

        Raises:
            ValidationError: For any other spelling.
        """
        if isinstance(raw, Mapping) and len(raw) == 1:
            (key, flag), = raw.items()
            if key in ("$asc", "$desc") and isinstance(flag, bool):
                ascending = flag if key == "$asc" else not flag
                return cls.ASC if ascending else cls.DESC
        elif isinstance(raw, str) and raw.upper() in cls.__members__:
            return cls[raw.upper()]
        elif type(raw) is int and raw in (1, -1):
            return cls.ASC if raw == 1 else cls.DESC
        raise ValidationError(
            f"Invalid sort direction {raw!r}; use {{'$asc': true}}, 'ASC' / 'DESC' or 1 / -1.",
            operator="$sort",
        )


def _is_count(value: Any) -> bool:
    return type(value) is int and value >= 0


def flag(operator: str) -> OperatorHandler:
    """Handler factory for Boolean switches.

    The keyword itself lives in the template (``{ DISTINCT [$distinct] }``);
    the handler only checks the operand and renders nothing.
    """

    def handler(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
        if not isinstance(value, bool):
            raise ValidationError(
                f"'{operator}' must always be a Boolean, got {value!r}.", operator=operator
            )
        return ""

    handler.__name__ = f"flag_{operator.lstrip('$')}"
    return handler


def val(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if value is not None and not isinstance(value, _SCALARS):
        raise ValidationError(
            f"'$val' expects a scalar value, got {type(value).__name__}.", operator="$val"
        )
    return ctx.bind(value)


def aggregate(function: str, operator: str) -> OperatorHandler:
    """Handler factory for ``FUNC(<operand>)``.

    A string operand is a column (``'*'`` stays bare); an object operand is
    a value expression such as ``{'$val': 1}``.
    """

    def handler(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
        expr = ExpressionCompiler(ctx)
        if isinstance(value, str):
            operand = expr.identifier(value)
        elif isinstance(value, Mapping):
            operand = expr.value_expression(value, operator)
        else:
            raise ValidationError(
                f"'{operator}' expects a column name or an expression, got {value!r}.",
                operator=operator,
            )
        return f"{function}({operand})"

    handler.__name__ = f"aggregate_{function.lower()}"
    return handler


def columns(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    return ExpressionCompiler(ctx).projection(value)


def table(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if node.get("$from") is not None and node.get("$table") is not None:
        raise ValidationError("Use either '$from' or '$table', not both.", operator="$from")
    return ExpressionCompiler(ctx).identifier_list(value, "$from")


def where(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    return ExpressionCompiler(ctx).condition(value)


def expression(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``$expr: {'$count': '*', '$gt': 2}`` → ``COUNT(*) > ?``.

    One non-comparison key supplies the left-hand expression; every
    comparison key renders against it (joined with ``AND``).
    """
    if not isinstance(value, Mapping):
        raise ValidationError("'$expr' expects an object.", operator="$expr")
    ops = [key for key in value if key in COMPARISONS]
    operands = [key for key in value if key not in COMPARISONS]
    if len(operands) != 1 or not ops:
        raise ValidationError(
            "'$expr' takes one expression operator and at least one comparison, "
            f"got {list(value)}.",
            operator="$expr",
        )
    left_key = operands[0]
    expr = ExpressionCompiler(ctx)
    parts: list[str] = []
    for op in ops:
        left = expr.value_expression({left_key: value[left_key]}, "$expr")
        right = expr.value_expression(value[op], "$expr")
        parts.append(f"{left} {COMPARISONS[op]} {right}")
    return expr.group("$and", parts, ctx.combinator)


def group_by(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    return ExpressionCompiler(ctx).identifier_list(value, "$groupBy")


def sort(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``ORDER BY`` items in input order.

    A bare column name renders without a direction; ``{column: direction}``
    renders ``column ASC|DESC``.
    """
    expr = ExpressionCompiler(ctx)
    if isinstance(value, str):
        return expr.identifier(value)
    if isinstance(value, Mapping):
        return ", ".join(_sort_entries(value, expr))
    if isinstance(value, (list, tuple)) and value:
        parts: list[str] = []
        for item in value:
            if isinstance(item, str):
                parts.append(expr.identifier(item))
            elif isinstance(item, Mapping):
                parts.extend(_sort_entries(item, expr))
            else:
                raise ValidationError(f"Invalid '$sort' item {item!r}.", operator="$sort")
        return ", ".join(parts)
    raise ValidationError(
        f"'$sort' expects a column, list or object, got {value!r}.", operator="$sort"
    )


def _sort_entries(node: Mapping[str, Any], expr: ExpressionCompiler) -> list[str]:
    return [
        f"{expr.identifier(column)} {SortDirection.normalize(raw).value}"
        for column, raw in node.items()
    ]


def limit(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """A bound row count, or the dialect's "no limit" literal for ``'ALL'``."""
    if isinstance(value, str) and value.upper() == "ALL":
        return ctx.dialect.max_limit
    if not _is_count(value):
        raise ValidationError(
            f"'$limit' expects a non-negative integer or 'ALL', got {value!r}.",
            operator="$limit",
        )
    return ctx.bind(value)


def offset(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if node.get("$limit") is None:
        raise ValidationError("'$offset' requires '$limit'.", operator="$offset")
    if not _is_count(value):
        raise ValidationError(
            f"'$offset' expects a non-negative integer, got {value!r}.", operator="$offset"
        )
    return ctx.bind(value)


def assignments(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``$set: {col: value}`` → ``col = ?, ...`` for ``UPDATE``."""
    if not isinstance(value, Mapping) or not value:
        raise ValidationError("'$set' expects a non-empty object.", operator="$set")
    expr = ExpressionCompiler(ctx)
    return ", ".join(
        f"{expr.identifier(column)} = {expr.value_expression(item, '$set')}"
        for column, item in value.items()
    )


def documents(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``$documents`` → ``(a, b) VALUES (?, ?), (?, ?)`` for ``INSERT``.

    Every document must have the keys of the first one, in any order.
    """
    rows = [value] if isinstance(value, Mapping) else value
    if not isinstance(rows, (list, tuple)) or not rows:
        raise ValidationError(
            "'$documents' expects an object or a non-empty list of objects.",
            operator="$documents",
        )
    first = rows[0]
    if not isinstance(first, Mapping) or not first:
        raise ValidationError("Each document must be a non-empty object.", operator="$documents")
    keys = list(first)

    expr = ExpressionCompiler(ctx)
    column_sql = ", ".join(expr.identifier(key) for key in keys)
    row_sql: list[str] = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping) or set(row) != set(keys):
            raise ValidationError(
                f"Document {index} does not have the columns {keys}.",
                operator="$documents",
            )
        row_sql.append("(" + ", ".join(expr.value_expression(row[key], "$documents") for key in keys) + ")")
    return f"({column_sql}) VALUES {', '.join(row_sql)}"
