"""Operator and dialect registries (Open/Closed Principle).

``OperatorRegistry``
    Maps ``$``-prefixed operator names to SQL rendering handlers for one
    dialect.  A miss falls back to the base dialect's registry; a miss
    there raises :class:`~treeql.errors.UnknownOperatorError`.  Registries
    are mutable while a dialect is composed and read-only afterwards.

``DialectFactory``
    Central registry of composed :class:`~treeql.compile.dialect.Dialect`
    values.  Register a dialect once; builders look it up by name.

Usage::

    registry = OperatorRegistry("mysql", fallback=ansi_registry)

    @registry.register("$rollup")
    def _rollup(value, node, identifier, ctx):
        ...
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from treeql.errors import DialectConfigError, UnknownDialectError, UnknownOperatorError

if TYPE_CHECKING:
    from treeql.compile.dialect import Dialect

logger = structlog.get_logger(__name__)

#: Type alias for an operator rendering handler.
#: ``(value, enclosing_node, identifier, ctx) -> sql_fragment`` where ``ctx`` is a
#: :class:`~treeql.compile.context.CompileContext`.
OperatorHandler = Callable[[Any, Mapping[str, Any], str | None, Any], str]


# ---------------------------------------------------------------------------
# Operator registry
# ---------------------------------------------------------------------------


class OperatorRegistry:
    """Registry mapping operator names to SQL rendering handlers.

    Args:
        dialect: Name of the dialect this registry belongs to.
        fallback: Registry consulted when a name is not registered here
            (the base dialect's registry).  ``None`` for the base itself.

    Example::

        @registry.register("$regexp")
        def _regexp(value, node, identifier, ctx):
            return f"{ctx.quote(identifier)} REGEXP {ctx.bind(value)}"
    """

    def __init__(self, dialect: str, fallback: OperatorRegistry | None = None) -> None:
        self._dialect = dialect
        self._fallback = fallback
        self._handlers: dict[str, OperatorHandler] | Mapping[str, OperatorHandler] = {}
        self._frozen = False

    @property
    def dialect(self) -> str:
        return self._dialect

    @property
    def fallback(self) -> OperatorRegistry | None:
        return self._fallback

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self, name: str, handler: OperatorHandler | None = None
    ) -> Any:
        """Register ``handler`` under ``name``, replacing any prior entry.

        Called with only ``name`` it returns a decorator.

        Raises:
            DialectConfigError: If the registry is frozen or ``name`` does
                not start with ``$``.
        """
        if handler is None:

            def decorator(fn: OperatorHandler) -> OperatorHandler:
                self.register(name, fn)
                return fn

            return decorator

        if self._frozen:
            raise DialectConfigError(
                f"Cannot register '{name}': dialect '{self._dialect}' is already built."
            )
        if not isinstance(name, str) or not name.startswith("$") or len(name) < 2:
            raise DialectConfigError(f"Operator names must start with '$', got {name!r}.")
        self._handlers[name] = handler  # type: ignore[index]
        return handler

    def get(self, name: str) -> OperatorHandler | None:
        """Return the handler for ``name`` (consulting the fallback), or ``None``."""
        handler = self._handlers.get(name)
        if handler is None and self._fallback is not None:
            return self._fallback.get(name)
        return handler

    def resolve(self, name: str) -> OperatorHandler:
        """Return the handler for ``name``.

        Raises:
            UnknownOperatorError: If neither this registry nor its fallback
                registers ``name``.
        """
        handler = self.get(name)
        if handler is None:
            raise UnknownOperatorError(name, self._dialect)
        return handler

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def registered_operators(self) -> list[str]:
        """Return the sorted names resolvable here, including the fallback's."""
        names = set(self._handlers)
        if self._fallback is not None:
            names.update(self._fallback.registered_operators())
        return sorted(names)

    def freeze(self) -> OperatorRegistry:
        """Make the registry read-only and return it."""
        self._handlers = MappingProxyType(dict(self._handlers))
        self._frozen = True
        return self


# ---------------------------------------------------------------------------
# Dialect factory
# ---------------------------------------------------------------------------


class DialectFactory:
    """Registry mapping dialect names (and aliases) to composed dialects.

    Example::

        DialectFactory.register_dialect(compose_mysql(ANSI))
        dialect = DialectFactory.get("mysql")
    """

    _dialects: ClassVar[dict[str, Dialect]] = {}

    @classmethod
    def register_dialect(cls, dialect: Dialect, *aliases: str) -> None:
        """Register a composed dialect under its own name and ``aliases``."""
        for name in (dialect.name, *aliases):
            cls._dialects[name.lower()] = dialect
        logger.debug("dialect.registered", dialect=dialect.name, aliases=list(aliases))

    @classmethod
    def get(cls, name: str) -> Dialect:
        """Return the dialect registered for ``name`` (case-insensitive).

        Raises:
            UnknownDialectError: If no dialect is registered for ``name``.
        """
        dialect = cls._dialects.get(name.lower()) if isinstance(name, str) else None
        if dialect is None:
            raise UnknownDialectError(str(name), cls.registered_dialects())
        return dialect

    @classmethod
    def registered_dialects(cls) -> list[str]:
        """Return the sorted list of registered dialect names and aliases."""
        return sorted(cls._dialects)
