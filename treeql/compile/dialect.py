"""Dialect values and their two-phase composition.

A :class:`DialectBuilder` is the mutable phase: it starts from a base
dialect (or from nothing, for ANSI), accepts ``register`` /
``register_syntax`` / ``update_syntax`` calls that each replace the prior
entry for a key wholesale, and finally :meth:`~DialectBuilder.build` returns
a frozen :class:`Dialect` that is safe to share between concurrent compiles.

Example::

    builder = DialectBuilder("mysql", base=ANSI)
    builder.register("$rollup", flag("$rollup"))
    builder.update_syntax("$select", MYSQL_SELECT, defaults={"$columns": "*"})
    MYSQL = builder.build()
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import structlog

from treeql.compile.base import (
    BacktickQuoter,
    PlaceholderStyle,
    Quoter,
    qmark_placeholder,
)
from treeql.compile.context import CompileContext
from treeql.compile.registry import OperatorHandler, OperatorRegistry
from treeql.compile.syntax import SyntaxTemplate, parse
from treeql.errors import DialectConfigError, UnknownOperatorError, ValidationError

logger = structlog.get_logger(__name__)

#: MySQL's documented way to say "no limit": the maximum unsigned BIGINT.
MAX_UNSIGNED_BIGINT = "18446744073709551615"


@dataclass(frozen=True)
class Dialect:
    """A composed, read-only SQL dialect.

    Attributes:
        name: Canonical dialect name.
        registry: Frozen operator registry (falls back to ``base``'s).
        syntax: Read-only map of operator name to parsed template.
        statements: Operators accepted at the root of a query.
        predicates: Operators accepted as a key of a filter object.
        quoter: Identifier quoting rules.
        placeholder: Placeholder token style for bound values.
        max_limit: Literal emitted for ``$limit: 'ALL'``.
        base: The dialect this one was derived from, if any.
    """

    name: str
    registry: OperatorRegistry
    syntax: Mapping[str, SyntaxTemplate]
    statements: frozenset[str]
    predicates: frozenset[str]
    quoter: Quoter
    placeholder: PlaceholderStyle
    max_limit: str
    base: Dialect | None = field(default=None, repr=False)

    def template(self, name: str) -> SyntaxTemplate | None:
        """Return the template registered for ``name``, or ``None``."""
        return self.syntax.get(name)

    def is_statement(self, name: str) -> bool:
        return name in self.statements

    def is_predicate(self, name: str) -> bool:
        return name in self.predicates


def template_handler(
    template: SyntaxTemplate, defaults: Mapping[str, Any] | None = None
) -> OperatorHandler:
    """Wrap ``template`` as an operator handler.

    The handler requires an object operand, rejects ``$``-keys the template
    does not reference (so an operator only one dialect supports fails
    instead of being dropped) and renders the template against the operand,
    with ``defaults`` filling keys the operand leaves out.
    """

    def render(
        value: Any,
        node: Mapping[str, Any],
        identifier: str | None,
        ctx: CompileContext,
    ) -> str:
        if not isinstance(value, Mapping):
            raise ValidationError(
                f"'{template.name}' expects an object, got {type(value).__name__}.",
                operator=template.name,
            )
        for key in value:
            if not isinstance(key, str) or not key.startswith("$"):
                raise ValidationError(
                    f"Unexpected key {key!r} in '{template.name}'.",
                    operator=template.name,
                )
            if key not in template.keys:
                raise UnknownOperatorError(
                    key,
                    ctx.dialect.name,
                    reason=f"'{template.name}' does not support it.",
                )
        if defaults:
            # an explicit null falls back to the default like a missing key
            merged = dict(value)
            for key, default in defaults.items():
                if merged.get(key) is None:
                    merged[key] = default
            value = merged
        return template.render(value, ctx, identifier)

    render.__name__ = f"render_{template.name.lstrip('$')}"
    return render


class DialectBuilder:
    """Mutable composition phase for a :class:`Dialect`.

    Args:
        name: Name of the dialect being composed.
        base: Dialect to derive from.  Its syntax table is shallow-cloned and
            its registry becomes the fallback for every operator this
            dialect does not override.
    """

    def __init__(self, name: str, base: Dialect | None = None) -> None:
        self._name = name
        self._base = base
        self._registry = OperatorRegistry(name, base.registry if base else None)
        self._syntax: dict[str, SyntaxTemplate] = dict(base.syntax) if base else {}
        self._statements: set[str] = set(base.statements) if base else set()
        self._predicates: set[str] = set(base.predicates) if base else set()
        self._quoter: Quoter = base.quoter if base else BacktickQuoter()
        self._placeholder: PlaceholderStyle = base.placeholder if base else qmark_placeholder
        self._max_limit: str = base.max_limit if base else MAX_UNSIGNED_BIGINT
        self._built = False

    @property
    def name(self) -> str:
        return self._name

    def register(
        self,
        name: str,
        handler: OperatorHandler | None = None,
        statement: bool = False,
        predicate: bool = False,
    ) -> Any:
        """Install or replace the handler for ``name``.

        Called with only ``name`` it returns a decorator.

        Args:
            name: ``$``-prefixed operator key.
            handler: Rendering handler.
            statement: Accept the operator at the root of a query.
            predicate: Accept the operator as a key of a filter object
                (``{"$exists": ...}`` inside ``$where``).
        """
        self._check_open(name)
        if handler is None:

            def decorator(fn: OperatorHandler) -> OperatorHandler:
                self.register(name, fn, statement=statement, predicate=predicate)
                return fn

            return decorator

        self._registry.register(name, handler)
        if statement:
            self._statements.add(name)
        if predicate:
            self._predicates.add(name)
        return handler

    def register_syntax(
        self,
        name: str,
        grammar: str,
        defaults: Mapping[str, Any] | None = None,
        statement: bool = False,
    ) -> SyntaxTemplate:
        """Parse ``grammar`` once and install it as the handler for ``name``.

        Raises:
            TemplateSyntaxError: If ``grammar`` is malformed.
        """
        self._check_open(name)
        template = parse(grammar, name)
        self._syntax[name] = template
        self.register(name, template_handler(template, defaults), statement=statement)
        return template

    def update_syntax(
        self,
        name: str,
        grammar: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> SyntaxTemplate:
        """Replace an inherited template wholesale.

        Raises:
            DialectConfigError: If no template named ``name`` exists yet.
        """
        if name not in self._syntax:
            raise DialectConfigError(
                f"Cannot update syntax '{name}' in dialect '{self._name}': "
                "no such template. Use register_syntax() instead."
            )
        return self.register_syntax(
            name, grammar, defaults=defaults, statement=name in self._statements
        )

    def quoter(self, quoter: Quoter) -> DialectBuilder:
        self._check_open("quoter")
        self._quoter = quoter
        return self

    def placeholder(self, style: PlaceholderStyle) -> DialectBuilder:
        self._check_open("placeholder")
        self._placeholder = style
        return self

    def max_limit(self, literal: str) -> DialectBuilder:
        self._check_open("max_limit")
        self._max_limit = literal
        return self

    def build(self) -> Dialect:
        """Freeze the composition and return the :class:`Dialect`.

        The builder cannot be used afterwards.
        """
        self._check_open("build")
        self._built = True
        dialect = Dialect(
            name=self._name,
            registry=self._registry.freeze(),
            syntax=MappingProxyType(dict(self._syntax)),
            statements=frozenset(self._statements),
            predicates=frozenset(self._predicates),
            quoter=self._quoter,
            placeholder=self._placeholder,
            max_limit=self._max_limit,
            base=self._base,
        )
        logger.debug(
            "dialect.composed",
            dialect=self._name,
            base=self._base.name if self._base else None,
            statements=sorted(self._statements),
        )
        return dialect

    def _check_open(self, what: str) -> None:
        if self._built:
            raise DialectConfigError(
                f"Cannot change '{what}': dialect '{self._name}' is already built."
            )
