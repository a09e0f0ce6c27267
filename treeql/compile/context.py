"""Compilation context value objects.

``Binder`` accumulates bound values for one compile.  ``CompileContext``
packages the ``(dialect, binder, position)`` data clump that every operator
handler and template renderer receives, so handlers never reach for hidden
shared state.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from treeql.compile.base import PlaceholderStyle

if TYPE_CHECKING:
    from treeql.compile.dialect import Dialect


@dataclass
class Binder:
    """Append-only list of bound values for a single compilation run.

    Each call to :meth:`bind` returns the placeholder token to splice into
    the SQL text at the point the value is emitted, so ``values[i]`` always
    belongs to the i-th placeholder from the left.
    """

    placeholder: PlaceholderStyle
    _values: list[Any] = field(default_factory=list)

    def bind(self, value: Any) -> str:
        """Store ``value`` and return its placeholder token."""
        self._values.append(value)
        return self.placeholder(len(self._values))

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True)
class CompileContext:
    """Immutable context for a single compilation run.

    Attributes:
        dialect: The frozen dialect being compiled for.
        binder: Shared value accumulator for this run.
        combinator: The boolean combinator (``$and`` / ``$or``) enclosing
            the clause being compiled, or ``None`` at the top of a filter.
    """

    dialect: Dialect
    binder: Binder
    combinator: str | None = None

    def within(self, combinator: str | None) -> CompileContext:
        """Return a copy positioned inside ``combinator``."""
        return replace(self, combinator=combinator)

    def quote(self, name: str) -> str:
        return self.dialect.quoter.quote_identifier(name)

    def bind(self, value: Any) -> str:
        return self.binder.bind(value)

    def invoke(
        self,
        name: str,
        value: Any,
        node: Mapping[str, Any],
        identifier: str | None = None,
    ) -> str:
        """Resolve ``name`` in the active dialect and call its handler.

        Raises:
            UnknownOperatorError: If neither the dialect nor its base
                registers ``name``.
        """
        handler = self.dialect.registry.resolve(name)
        return handler(value, node, identifier, self)
