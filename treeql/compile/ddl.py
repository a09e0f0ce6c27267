"""DDL operator handlers for ``CREATE TABLE``.

``$define`` is rendered as a repeat list by the ``$createTable`` template;
each entry is either a column (``{"id": {"$column": {...}}}``) or a named
constraint block (``{"$constraint": {...}}``).  Column bodies are rendered by
the dialect's ``$column`` template, so dialects add column options by
overriding that template rather than this module.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from treeql.compile.context import CompileContext
from treeql.compile.expression_builder import ExpressionCompiler
from treeql.errors import UnknownOperatorError, ValidationError

_TYPE_NAME = re.compile(r"[A-Za-z][A-Za-z0-9_]*( [A-Za-z][A-Za-z0-9_]*)*")

#: Constraint kinds: ``$key -> SQL keyword``.
CONSTRAINTS: dict[str, str] = {
    "$primary": "PRIMARY KEY",
    "$unique": "UNIQUE",
}


def define(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """One ``$define`` entry: a column definition or a constraint block."""
    if not isinstance(value, Mapping) or not value:
        raise ValidationError(
            "'$define' entries must be objects of column definitions.", operator="$define"
        )
    parts: list[str] = []
    for name, spec in value.items():
        if name == "$constraint":
            parts.append(ctx.invoke("$constraint", spec, value, None))
        elif isinstance(name, str) and name.startswith("$"):
            raise UnknownOperatorError(name, ctx.dialect.name, reason="Not valid inside '$define'.")
        else:
            parts.append(_column_definition(name, spec, ctx))
    return ", ".join(parts)


def _column_definition(name: str, spec: Any, ctx: CompileContext) -> str:
    if not isinstance(spec, Mapping):
        raise ValidationError(
            f"Column '{name}' expects {{'$column': {{...}}}}, got {spec!r}.", operator="$define"
        )
    body = spec["$column"] if set(spec) == {"$column"} else spec
    return f"{ctx.quote(name)} {ctx.invoke('$column', body, spec, name)}"


def constraint(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``{name: {'$primary': [cols]}}`` → ``CONSTRAINT name PRIMARY KEY (cols)``.

    ``$foreignKey: {'$columns': [...], '$references': {'$table': t,
    '$columns': [...]}}`` renders ``FOREIGN KEY (...) REFERENCES t (...)``.
    """
    if not isinstance(value, Mapping) or not value:
        raise ValidationError("'$constraint' expects an object of named constraints.", operator="$constraint")
    expr = ExpressionCompiler(ctx)
    parts: list[str] = []
    for name, spec in value.items():
        if not isinstance(spec, Mapping) or len(spec) != 1:
            raise ValidationError(
                f"Constraint '{name}' takes exactly one kind, got {spec!r}.",
                operator="$constraint",
            )
        (kind, operand), = spec.items()
        if kind in CONSTRAINTS:
            body = f"{CONSTRAINTS[kind]} ({expr.identifier_list(operand, kind)})"
        elif kind == "$foreignKey":
            body = _foreign_key(operand, expr)
        else:
            raise UnknownOperatorError(str(kind), ctx.dialect.name, reason="Not a constraint kind.")
        parts.append(f"CONSTRAINT {expr.identifier(name)} {body}")
    return ", ".join(parts)


def _foreign_key(operand: Any, expr: ExpressionCompiler) -> str:
    references = operand.get("$references") if isinstance(operand, Mapping) else None
    if not isinstance(references, Mapping) or "$columns" not in operand:
        raise ValidationError(
            "'$foreignKey' expects {'$columns': [...], '$references': {'$table': ..., '$columns': [...]}}.",
            operator="$foreignKey",
        )
    if "$table" not in references or "$columns" not in references:
        raise ValidationError("'$references' needs '$table' and '$columns'.", operator="$foreignKey")
    return (
        f"FOREIGN KEY ({expr.identifier_list(operand['$columns'], '$foreignKey')}) "
        f"REFERENCES {expr.identifier(references['$table'])} "
        f"({expr.identifier_list(references['$columns'], '$foreignKey')})"
    )


def column_type(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """The column's data type, emitted verbatim after a name check."""
    if not isinstance(value, str) or not _TYPE_NAME.fullmatch(value):
        raise ValidationError(f"Invalid column type {value!r}.", operator="$type")
    return value.upper()


def length(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``40`` → ``(40)``; ``[10, 2]`` → ``(10, 2)``."""
    sizes = list(value) if isinstance(value, (list, tuple)) else [value]
    if not sizes or len(sizes) > 2 or any(type(size) is not int or size <= 0 for size in sizes):
        raise ValidationError(
            f"'$length' expects a positive integer or [precision, scale], got {value!r}.",
            operator="$length",
        )
    return "(" + ", ".join(str(size) for size in sizes) + ")"


def default(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    return ExpressionCompiler(ctx).value_expression(value, "$default")
