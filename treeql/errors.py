"""Custom exception hierarchy for treeQL.

All public errors inherit from TreeQLError so callers can catch the base
class for any treeQL-specific failure.

Compile-time failures (bad operand shape, unknown operator, missing
mandatory field) derive from :class:`CompilationError` and carry a
machine-readable ``code``.  Composition-time failures (malformed grammar,
registering on a frozen dialect, unknown dialect names) are raised while
dialects are built or selected, before any query is compiled.
"""
from __future__ import annotations

from typing import Any


class TreeQLError(Exception):
    """Base exception for all treeQL errors."""


class CompilationError(TreeQLError):
    """Raised when a query tree cannot be compiled.

    Args:
        message: Human-readable description.
        code: Machine-readable error code (e.g. ``UNKNOWN_OPERATOR``).
        details: Extra context about the failing node.
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details: dict[str, Any] = details or {}

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error response for API callers."""
        return {
            "error": self.code,
            "message": str(self),
            "details": self.details,
        }


class ValidationError(CompilationError):
    """Raised when an operand has the wrong shape or type for its operator.

    Args:
        message: Human-readable description.
        operator: The ``$``-key whose handler rejected the operand.
        details: Extra context (e.g. the offending value's type).
    """

    def __init__(
        self,
        message: str,
        operator: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if operator is not None:
            details.setdefault("operator", operator)
        super().__init__(message, code="INVALID_OPERAND", details=details)
        self.operator = operator


class UnknownOperatorError(CompilationError):
    """Raised when a ``$``-key resolves neither in a dialect nor in its base."""

    def __init__(self, operator: str, dialect: str, reason: str | None = None) -> None:
        message = f"Unknown operator '{operator}' for dialect '{dialect}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(
            message,
            code="UNKNOWN_OPERATOR",
            details={"operator": operator, "dialect": dialect},
        )
        self.operator = operator
        self.dialect = dialect


class MissingRequiredFieldError(CompilationError):
    """Raised when a mandatory template reference has no value.

    Example: ``$createTable`` without ``$table``.
    """

    def __init__(self, field: str, operator: str) -> None:
        super().__init__(
            f"'{operator}' requires '{field}'.",
            code="MISSING_REQUIRED_FIELD",
            details={"field": field, "operator": operator},
        )
        self.field = field
        self.operator = operator


class TemplateSyntaxError(TreeQLError):
    """Raised when a grammar string cannot be parsed.

    Args:
        message: Human-readable description.
        grammar: The grammar string that failed to parse.
    """

    def __init__(self, message: str, grammar: str | None = None) -> None:
        super().__init__(message)
        self.grammar = grammar


class DialectConfigError(TreeQLError):
    """Raised when a dialect is composed incorrectly.

    Detected while the dialect is being built (bad operator name,
    registration after freezing, overriding a template that does not
    exist) so mistakes surface at import time rather than mid-compile.
    """


class UnknownDialectError(TreeQLError):
    """Raised when a builder is constructed for an unregistered dialect."""

    def __init__(self, name: str, registered: list[str]) -> None:
        super().__init__(
            f"Unsupported dialect: '{name}'. Registered dialects: {registered}."
        )
        self.name = name
        self.registered = registered
