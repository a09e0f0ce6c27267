"""PostgreSQL dialect.

Identifiers are double-quoted and values use numbered ``$1``, ``$2``, ...
placeholders (``asyncpg`` style).  ``$limit: 'ALL'`` renders the native
``LIMIT ALL``.  ``CREATE TABLE`` gains ``UNLOGGED``, ``WITH (OIDS = ...)``
and ``TABLESPACE``; column definitions gain identity columns,
collations, inline ``CHECK`` constraints and ``REFERENCES``.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from treeql.compile import clause_builders
from treeql.compile.ansi import ANSI
from treeql.compile.base import DoubleQuoteQuoter, numeric_placeholder
from treeql.compile.context import CompileContext
from treeql.compile.dialect import Dialect, DialectBuilder
from treeql.compile.expression_builder import ExpressionCompiler, comparison
from treeql.errors import ValidationError

CREATE_TABLE = """
    CREATE { TEMPORARY [$temp] } { UNLOGGED [$unlogged] } TABLE { IF NOT EXISTS [$ine] } <$table>
        (<$define, ...>)
        { WITH ([$with]) }
        { TABLESPACE [$tablespace] }
"""

COLUMN = """
    <$type>[$length]
        { NOT NULL [$notNull] }
        { DEFAULT [$default] }
        [$identity]
        { PRIMARY KEY [$primary] }
        { UNIQUE [$unique] }
        { COLLATE [$collate] }
        { CHECK ([$check]) }
        { REFERENCES [$references] }
"""

#: Storage parameters accepted inside ``$with``.
WITH = "[$oids]"


def identity(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``true`` → ``GENERATED ALWAYS AS IDENTITY``; ``'default'`` → ``BY DEFAULT``."""
    if isinstance(value, bool):
        return "GENERATED ALWAYS AS IDENTITY" if value else ""
    if value == "default":
        return "GENERATED BY DEFAULT AS IDENTITY"
    raise ValidationError(
        "'$identity' must either be a Boolean or the String 'default'.", operator="$identity"
    )


def collate(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("'$collate' must be a String.", operator="$collate")
    return ctx.dialect.quoter.quote_segment(value)


def check(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """A filter object, compiled like a ``$where`` body."""
    return ExpressionCompiler(ctx).condition(value)


def references(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``'companies'`` or ``{'$table': 'companies', '$columns': ['id']}``."""
    expr = ExpressionCompiler(ctx)
    if isinstance(value, str):
        return expr.identifier(value)
    if not isinstance(value, Mapping) or "$table" not in value or set(value) - {"$table", "$columns"}:
        raise ValidationError(
            "'$references' expects a table name or {'$table': ..., '$columns': [...]}.",
            operator="$references",
        )
    target = expr.identifier(value["$table"])
    if value.get("$columns") is None:
        return target
    return f"{target} ({expr.identifier_list(value['$columns'], '$references')})"


def oids(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if not isinstance(value, bool):
        raise ValidationError("'$oids' must always be a Boolean.", operator="$oids")
    return f"OIDS = {'TRUE' if value else 'FALSE'}"


def tablespace(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if not isinstance(value, str):
        raise ValidationError("'$tablespace' must always be a String.", operator="$tablespace")
    return ctx.quote(value)


def compose_postgres(base: Dialect = ANSI) -> Dialect:
    """Compose the PostgreSQL dialect on top of ``base``."""
    builder = (
        DialectBuilder("postgresql", base=base)
        .quoter(DoubleQuoteQuoter())
        .placeholder(numeric_placeholder)
        .max_limit("ALL")
    )

    builder.update_syntax("$createTable", CREATE_TABLE)
    builder.update_syntax("$column", COLUMN)
    builder.register_syntax("$with", WITH)

    builder.register("$ilike", comparison("$ilike", "ILIKE"))
    builder.register("$unlogged", clause_builders.flag("$unlogged"))
    builder.register("$identity", identity)
    builder.register("$collate", collate)
    builder.register("$check", check)
    builder.register("$references", references)
    builder.register("$oids", oids)
    builder.register("$tablespace", tablespace)

    return builder.build()


POSTGRES: Dialect = compose_postgres()
