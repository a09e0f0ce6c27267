"""MySQL dialect.

Derives from the ANSI base and adds result redirection (``$into``,
``$outfile``), ``SQL_CALC_FOUND_ROWS``, ``WITH ROLLUP`` and the
``AUTO_INCREMENT`` / ``COMMENT`` column options.  Quoting (backticks) and
placeholders (``?``, as expected by ``PyMySQL`` and ``mysqlclient``) are
inherited unchanged.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from treeql.compile import clause_builders
from treeql.compile.ansi import ANSI, SELECT_DEFAULTS
from treeql.compile.context import CompileContext
from treeql.compile.dialect import Dialect, DialectBuilder
from treeql.errors import UnknownOperatorError, ValidationError
from treeql.schema.options import OutfileOptions, parse_options

SELECT = """
    SELECT { SQL_CALC_FOUND_ROWS [$calcFoundRows] } { DISTINCT [$distinct] } [$columns]
    { INTO [$into] }
    { FROM [$from] } { FROM [$table] }
    { WHERE [$where] }
    { GROUP BY [$groupBy] { WITH ROLLUP [$rollup] } }
    { HAVING [$having] }
    { ORDER BY [$sort] }
    { LIMIT [$limit] }
    { OFFSET [$offset] }
    [$outfile]
"""

COLUMN = """
    <$type>[$length]
        { NOT NULL [$notNull] }
        { DEFAULT [$default] }
        { AUTO_INCREMENT [$autoIncrement] }
        { PRIMARY KEY [$primary] }
        { UNIQUE [$unique] }
        { COMMENT [$comment] }
"""

# @user_var, @@system_var or a plain variable name; emitted verbatim.
_VARIABLE = re.compile(r"@{0,2}[A-Za-z_][A-Za-z0-9_$.]*")


# ---------------------------------------------------------------------------
# Result redirection
# ---------------------------------------------------------------------------


def _outfile(value: Any, ctx: CompileContext, operator: str) -> str:
    """``OUTFILE ? [FIELDS ...] [LINES ...]`` with every option bound."""
    options = parse_options(OutfileOptions, value, operator)
    parts = ["OUTFILE", ctx.bind(options.file)]

    if options.fields is not None:
        fields = [
            (keyword, option)
            for keyword, option in (
                ("TERMINATED BY", options.fields.terminated_by),
                ("ENCLOSED BY", options.fields.enclosed_by),
                ("ESCAPED BY", options.fields.escaped_by),
            )
            if option is not None
        ]
        if fields:
            parts.append("FIELDS")
            parts.extend(f"{keyword} {ctx.bind(option)}" for keyword, option in fields)

    if options.lines is not None:
        lines = [
            (keyword, option)
            for keyword, option in (
                ("STARTING BY", options.lines.starting_by),
                ("TERMINATED BY", options.lines.terminated_by),
            )
            if option is not None
        ]
        if lines:
            parts.append("LINES")
            parts.extend(f"{keyword} {ctx.bind(option)}" for keyword, option in lines)

    return " ".join(parts)


def into(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """``$into`` inside ``$select``.

    ``['@a', '@b']`` renders the variables verbatim; ``{'$outfile': {...}}``
    and ``{'$dumpfile': path}`` redirect the result set to a file.
    """
    if isinstance(value, (list, tuple)):
        if not value:
            raise ValidationError("'$into' expects at least one variable.", operator="$into")
        for variable in value:
            if not isinstance(variable, str) or not _VARIABLE.fullmatch(variable):
                raise ValidationError(f"Invalid '$into' variable {variable!r}.", operator="$into")
        return ", ".join(value)

    if isinstance(value, Mapping) and len(value) == 1:
        (key, target), = value.items()
        if key == "$outfile":
            return _outfile(target, ctx, "$outfile")
        if key == "$dumpfile":
            if not isinstance(target, str) or not target:
                raise ValidationError("'$dumpfile' expects a file path.", operator="$dumpfile")
            return f"DUMPFILE {ctx.bind(target)}"
        raise UnknownOperatorError(str(key), ctx.dialect.name, reason="Not valid inside '$into'.")

    raise ValidationError(
        "'$into' expects a list of variables, {'$outfile': {...}} or {'$dumpfile': path}.",
        operator="$into",
    )


def outfile(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    """Trailing ``INTO OUTFILE`` clause of a ``$select``."""
    return f"INTO {_outfile(value, ctx, '$outfile')}"


def comment(value: Any, node: Mapping[str, Any], identifier: str | None, ctx: CompileContext) -> str:
    if not isinstance(value, str):
        raise ValidationError("'$comment' must be a String.", operator="$comment")
    return ctx.bind(value)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def compose_mysql(base: Dialect = ANSI) -> Dialect:
    """Compose the MySQL dialect on top of ``base``."""
    builder = DialectBuilder("mysql", base=base)

    builder.update_syntax("$select", SELECT, defaults=SELECT_DEFAULTS)
    builder.update_syntax("$column", COLUMN)

    builder.register("$into", into)
    builder.register("$outfile", outfile)
    builder.register("$comment", comment)
    for name in ("$calcFoundRows", "$rollup", "$autoIncrement"):
        builder.register(name, clause_builders.flag(name))

    return builder.build()


MYSQL: Dialect = compose_mysql()
