"""Grammar templates for statement-level syntax.

A dialect describes statements such as ``CREATE TABLE`` with a small grammar
string instead of hand-written rendering code::

    CREATE { TEMPORARY [$temp] } TABLE { IF NOT EXISTS [$ine] } <$table>
        (<$define, ...>)

Grammar constructs
------------------
``WORD``
    Literal token, emitted verbatim.  Runs of whitespace collapse to a single
    space; tokens written without whitespace between them are glued
    (``<$type>[$length]`` renders ``VARCHAR(40)``).
``{ ... }``
    Optional group.  Its guard is the first reference inside it; the group
    renders only when the guard's value is present (not missing, ``None``,
    ``False`` or empty) and otherwise contributes nothing, including its
    surrounding whitespace.  Groups nest; a key set inside a group whose
    guard is absent raises :class:`~treeql.errors.ValidationError`.
``<$key>``
    Required reference, rendered by the ``$key`` operator.  A missing value
    raises :class:`~treeql.errors.MissingRequiredFieldError`.
``[$key]``
    Inline optional reference, rendered when the key is set (not ``None``).
``<$key, ...>`` / ``[$key, ...]``
    Repeat list.  The value is a list (or a mapping, taken one entry at a
    time); each item is rendered by the ``$key`` operator and the results are
    joined with the separator written before ``...``.

Templates are parsed once by :func:`parse` and are immutable; rendering walks
the parsed nodes against each query node without re-parsing.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from treeql.errors import MissingRequiredFieldError, TemplateSyntaxError, ValidationError

if TYPE_CHECKING:
    from treeql.compile.context import CompileContext

_KEY = re.compile(r"\$[A-Za-z_][A-Za-z0-9_]*")

#: ``(text, space_before)`` pairs produced while rendering.
Fragment = tuple[str, bool]


# ---------------------------------------------------------------------------
# Template nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    """Verbatim token."""

    text: str
    space_before: bool = True


@dataclass(frozen=True)
class Required:
    """``<$key>``: reference that must be present."""

    key: str
    space_before: bool = True


@dataclass(frozen=True)
class InlineRef:
    """``[$key]``: reference rendered only when set."""

    key: str
    space_before: bool = True


@dataclass(frozen=True)
class RepeatList:
    """``<$key, ...>`` or ``[$key, ...]``: one rendering per item."""

    key: str
    separator: str
    required: bool = False
    space_before: bool = True


@dataclass(frozen=True)
class OptionalGroup:
    """``{ ... }``: children rendered only when ``guard`` is present."""

    children: tuple[TemplateNode, ...]
    guard: str
    space_before: bool = True


TemplateNode = Union[Literal, Required, InlineRef, RepeatList, OptionalGroup]


def is_present(value: Any) -> bool:
    """Return ``True`` when ``value`` switches on an optional group."""
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, Mapping)) and len(value) == 0:
        return False
    return True


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


class SyntaxTemplate:
    """An immutable, pre-parsed grammar.

    Args:
        name: The operator the template renders (e.g. ``'$createTable'``).
        grammar: The source grammar string.
        nodes: Parsed top-level nodes.
    """

    __slots__ = ("_name", "_grammar", "_nodes", "_keys")

    def __init__(self, name: str, grammar: str, nodes: tuple[TemplateNode, ...]) -> None:
        self._name = name
        self._grammar = grammar
        self._nodes = nodes
        self._keys = frozenset(_collect_keys(nodes))

    @property
    def name(self) -> str:
        return self._name

    @property
    def grammar(self) -> str:
        return self._grammar

    @property
    def nodes(self) -> tuple[TemplateNode, ...]:
        return self._nodes

    @property
    def keys(self) -> frozenset[str]:
        """Every ``$``-key the template references."""
        return self._keys

    def render(
        self,
        node: Mapping[str, Any],
        ctx: CompileContext,
        identifier: str | None = None,
    ) -> str:
        """Render the template against ``node``.

        Args:
            node: The query node holding the referenced keys.
            ctx: Compile context; references are rendered via
                :meth:`CompileContext.invoke`.
            identifier: Passed through to every referenced handler (the
                column name when rendering a column definition).

        Raises:
            MissingRequiredFieldError: If a required reference is missing.
        """
        return _join(self._render_nodes(self._nodes, node, ctx, identifier))

    def _render_nodes(
        self,
        nodes: tuple[TemplateNode, ...],
        node: Mapping[str, Any],
        ctx: CompileContext,
        identifier: str | None,
    ) -> list[Fragment]:
        fragments: list[Fragment] = []
        for item in nodes:
            fragments.extend(self._render_node(item, node, ctx, identifier))
        return fragments

    def _render_node(
        self,
        item: TemplateNode,
        node: Mapping[str, Any],
        ctx: CompileContext,
        identifier: str | None,
    ) -> list[Fragment]:
        if isinstance(item, Literal):
            return [(item.text, item.space_before)]

        if isinstance(item, OptionalGroup):
            if not is_present(node.get(item.guard)):
                for key in _collect_keys(item.children):
                    if key != item.guard and is_present(node.get(key)):
                        raise ValidationError(f"'{key}' requires '{item.guard}'.", operator=key)
                return []
            inner = self._render_nodes(item.children, node, ctx, identifier)
            if inner:
                inner[0] = (inner[0][0], item.space_before)
            return inner

        if isinstance(item, RepeatList):
            value = node.get(item.key)
            if not is_present(value):
                if item.required:
                    raise MissingRequiredFieldError(item.key, self._name)
                return []
            entries = _entries(value)
            parts = [ctx.invoke(item.key, entry, node, identifier) for entry in entries]
            text = item.separator.join(part for part in parts if part)
            return [(text, item.space_before)] if text else []

        value = node.get(item.key)
        if value is None:
            if isinstance(item, Required):
                raise MissingRequiredFieldError(item.key, self._name)
            return []
        text = ctx.invoke(item.key, value, node, identifier)
        return [(text, item.space_before)] if text else []

    def __repr__(self) -> str:
        return f"SyntaxTemplate({self._name!r}, {self._grammar!r})"


def _entries(value: Any) -> list[Any]:
    if isinstance(value, Mapping):
        return [{key: item} for key, item in value.items()]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _join(fragments: list[Fragment]) -> str:
    parts: list[str] = []
    for text, space_before in fragments:
        if parts and space_before:
            parts.append(" ")
        parts.append(text)
    return "".join(parts)


def _collect_keys(nodes: tuple[TemplateNode, ...]) -> list[str]:
    keys: list[str] = []
    for item in nodes:
        if isinstance(item, OptionalGroup):
            keys.extend(_collect_keys(item.children))
        elif not isinstance(item, Literal):
            keys.append(item.key)
    return keys


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def parse(grammar: str, name: str = "") -> SyntaxTemplate:
    """Parse ``grammar`` into a :class:`SyntaxTemplate`.

    Raises:
        TemplateSyntaxError: On unbalanced braces or brackets, empty groups,
            groups without a reference, or malformed references.
    """
    if not isinstance(grammar, str) or not grammar.strip():
        raise TemplateSyntaxError(f"Empty grammar for '{name}'.", grammar)
    nodes = _Parser(grammar, name).parse()
    return SyntaxTemplate(name, grammar, nodes)


class _Parser:
    def __init__(self, grammar: str, name: str) -> None:
        self._src = grammar
        self._name = name
        self._pos = 0

    def parse(self) -> tuple[TemplateNode, ...]:
        return tuple(self._sequence(in_group=False))

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(
            f"Invalid grammar for '{self._name}' at offset {self._pos}: {message}",
            self._src,
        )

    def _peek(self, offset: int = 0) -> str:
        index = self._pos + offset
        return self._src[index] if index < len(self._src) else ""

    def _at_reference(self) -> bool:
        return self._peek() in ("<", "[") and self._peek(1) == "$"

    def _sequence(self, in_group: bool) -> list[TemplateNode]:
        nodes: list[TemplateNode] = []
        space = False
        while self._pos < len(self._src):
            char = self._src[self._pos]
            if char.isspace():
                space = True
                self._pos += 1
                continue
            if char == "}":
                if not in_group:
                    raise self._error("unbalanced '}'")
                self._pos += 1
                return nodes
            if char == "{":
                self._pos += 1
                children = self._sequence(in_group=True)
                guard = _first_key(children)
                if guard is None:
                    raise self._error("optional group without a reference")
                nodes.append(OptionalGroup(tuple(children), guard, space))
            elif self._at_reference():
                nodes.append(self._reference(space))
            else:
                nodes.append(self._literal(space))
            space = False
        if in_group:
            raise self._error("unterminated '{'")
        return nodes

    def _reference(self, space: bool) -> TemplateNode:
        opener = self._src[self._pos]
        closer = ">" if opener == "<" else "]"
        end = self._src.find(closer, self._pos)
        if end < 0:
            raise self._error(f"unterminated '{opener}'")
        body = self._src[self._pos + 1 : end].strip()
        self._pos = end + 1

        match = _KEY.match(body)
        if match is None:
            raise self._error(f"malformed reference {body!r}")
        key = match.group(0)
        rest = body[match.end() :].strip()
        required = opener == "<"

        if not rest:
            return Required(key, space) if required else InlineRef(key, space)
        if not rest.endswith("..."):
            raise self._error(f"unexpected {rest!r} after {key}")
        return RepeatList(key, _separator(rest[:-3].strip()), required, space)

    def _literal(self, space: bool) -> Literal:
        start = self._pos
        while self._pos < len(self._src):
            char = self._src[self._pos]
            if char.isspace() or char in "{}" or self._at_reference():
                break
            self._pos += 1
        return Literal(self._src[start : self._pos], space)


def _separator(text: str) -> str:
    if not text:
        return " "
    if text == ",":
        return ", "
    return f" {text} "


def _first_key(nodes: list[TemplateNode]) -> str | None:
    for item in nodes:
        if isinstance(item, OptionalGroup):
            return item.guard
        if not isinstance(item, Literal):
            return item.key
    return None
