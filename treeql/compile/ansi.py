"""ANSI base dialect.

Every other dialect derives from :data:`ANSI`: its registry is their
fallback and its statement templates are their starting point.  Identifiers
are quoted with backticks and values use ``?`` placeholders.

Statements: ``$select``, ``$insert``, ``$update``, ``$delete``,
``$createTable``, ``$dropTable``.
"""
from __future__ import annotations

from treeql.compile import clause_builders, ddl
from treeql.compile.dialect import Dialect, DialectBuilder
from treeql.compile.expression_builder import (
    COMPARISONS,
    between,
    comparison,
    is_null,
    membership,
    negate,
)

SELECT = """
    SELECT { DISTINCT [$distinct] } [$columns]
    { FROM [$from] } { FROM [$table] }
    { WHERE [$where] }
    { GROUP BY [$groupBy] }
    { HAVING [$having] }
    { ORDER BY [$sort] }
    { LIMIT [$limit] }
    { OFFSET [$offset] }
"""

INSERT = "INSERT INTO <$table> <$documents>"

UPDATE = "UPDATE <$table> SET <$set> { WHERE [$where] }"

DELETE = "DELETE FROM <$table> { WHERE [$where] }"

CREATE_TABLE = """
    CREATE { TEMPORARY [$temp] } TABLE { IF NOT EXISTS [$ine] } <$table> (<$define, ...>)
"""

DROP_TABLE = "DROP TABLE { IF EXISTS [$ie] } <$table>"

COLUMN = """
    <$type>[$length]
        { NOT NULL [$notNull] }
        { DEFAULT [$default] }
        { PRIMARY KEY [$primary] }
        { UNIQUE [$unique] }
"""

#: Keys that fill in for ones a ``$select`` leaves out.
SELECT_DEFAULTS = {"$columns": "*"}

#: Aggregate operators: ``$key -> SQL function``.
AGGREGATES: dict[str, str] = {
    "$count": "COUNT",
    "$sum": "SUM",
    "$avg": "AVG",
    "$min": "MIN",
    "$max": "MAX",
}

_FLAGS = ("$distinct", "$temp", "$ine", "$ie", "$notNull", "$primary", "$unique")


def compose_ansi() -> Dialect:
    """Compose the ANSI base dialect."""
    builder = DialectBuilder("ansi")

    # statements
    builder.register_syntax("$select", SELECT, defaults=SELECT_DEFAULTS, statement=True)
    builder.register_syntax("$insert", INSERT, statement=True)
    builder.register_syntax("$update", UPDATE, statement=True)
    builder.register_syntax("$delete", DELETE, statement=True)
    builder.register_syntax("$createTable", CREATE_TABLE, statement=True)
    builder.register_syntax("$dropTable", DROP_TABLE, statement=True)
    builder.register_syntax("$column", COLUMN)

    # clauses
    builder.register("$columns", clause_builders.columns)
    builder.register("$from", clause_builders.table)
    builder.register("$table", clause_builders.table)
    builder.register("$where", clause_builders.where)
    builder.register("$having", clause_builders.where)
    builder.register("$groupBy", clause_builders.group_by)
    builder.register("$sort", clause_builders.sort)
    builder.register("$limit", clause_builders.limit)
    builder.register("$offset", clause_builders.offset)
    builder.register("$set", clause_builders.assignments)
    builder.register("$documents", clause_builders.documents)
    for name in _FLAGS:
        builder.register(name, clause_builders.flag(name))

    # expressions
    builder.register("$val", clause_builders.val)
    builder.register("$expr", clause_builders.expression, predicate=True)
    builder.register("$not", negate, predicate=True)
    for name, function in AGGREGATES.items():
        builder.register(name, clause_builders.aggregate(function, name))
    for name, sql_operator in COMPARISONS.items():
        builder.register(name, comparison(name, sql_operator))
    builder.register("$in", membership("$in", "IN"))
    builder.register("$nin", membership("$nin", "NOT IN"))
    builder.register("$between", between)
    builder.register("$isNull", is_null)

    # DDL
    builder.register("$define", ddl.define)
    builder.register("$constraint", ddl.constraint)
    builder.register("$type", ddl.column_type)
    builder.register("$length", ddl.length)
    builder.register("$default", ddl.default)

    return builder.build()


ANSI: Dialect = compose_ansi()
