"""Compiler abstractions: QueryResult, the Quoter ABC and placeholder styles.

The Template Method pattern (GoF) is used for quoting:
- ``Quoter`` defines how multi-part identifiers are split, which segments
  are left bare, and how embedded quote characters are escaped.
- Dialect quoters only supply the quote character.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from treeql.errors import ValidationError

#: ``(1-based index) -> placeholder token``
PlaceholderStyle = Callable[[int], str]


def qmark_placeholder(index: int) -> str:
    """``?`` placeholders, as used by ``mysqlclient``/``PyMySQL`` and ``sqlite3``."""
    return "?"


def numeric_placeholder(index: int) -> str:
    """``$1``, ``$2``, ... placeholders, as used by ``asyncpg``."""
    return f"${index}"


@dataclass(frozen=True)
class QueryResult:
    """The output of a successful compilation.

    Attributes:
        sql: The compiled SQL string with one positional placeholder per
            bound value.
        values: Bound values in placeholder order (left to right).
        dialect: Name of the dialect the statement was compiled for.
    """

    sql: str
    values: tuple[Any, ...]
    dialect: str

    def to_dict(self) -> dict[str, Any]:
        """Return ``{"sql": ..., "values": [...]}`` for JSON responses."""
        return {"sql": self.sql, "values": list(self.values)}


class Quoter(ABC):
    """Abstract base for dialect-specific identifier quoting.

    Quoters are stateless; a single instance is shared by every compile
    against the dialect that owns it.
    """

    @property
    @abstractmethod
    def quote_char(self) -> str:
        """Return the character that opens and closes a quoted identifier."""

    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier.

        ``*`` is never quoted and ``schema.table.column`` is quoted segment
        by segment (``people.*`` becomes ``"people".*``).

        Args:
            name: Unquoted identifier (table or column name).

        Returns:
            Quoted identifier.

        Raises:
            ValidationError: If ``name`` is not a non-empty string or has an
                empty segment.
        """
        if not isinstance(name, str) or not name:
            raise ValidationError(
                f"Identifier must be a non-empty string, got {name!r}.",
                details={"type": type(name).__name__},
            )
        segments = name.split(".")
        if any(not segment for segment in segments):
            raise ValidationError(f"Identifier {name!r} has an empty segment.")
        return ".".join(self.quote_segment(segment) for segment in segments)

    def quote_segment(self, segment: str) -> str:
        """Quote ``segment`` as one name part, dots included (``*`` stays bare)."""
        if segment == "*":
            return segment
        quote = self.quote_char
        escaped = segment.replace(quote, quote + quote)
        return f"{quote}{escaped}{quote}"


class BacktickQuoter(Quoter):
    """Quotes identifiers with backticks (`` ` ``)."""

    @property
    def quote_char(self) -> str:
        return "`"


class DoubleQuoteQuoter(Quoter):
    """Quotes identifiers with double-quotes (``"``)."""

    @property
    def quote_char(self) -> str:
        return '"'
