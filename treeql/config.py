"""Builder configuration.

``BuilderOptions`` selects the dialect a :class:`~treeql.SQLBuilder`
compiles for and how an unknown dialect name is treated::

    from treeql import BuilderOptions, SQLBuilder

    builder = SQLBuilder(options=BuilderOptions(dialect="mysql"))
"""
from __future__ import annotations

from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from treeql.errors import ValidationError

#: Name of the base dialect every other dialect derives from.
BASE_DIALECT = "ansi"


class BuilderOptions(BaseModel):
    """Options accepted by :class:`~treeql.SQLBuilder`.

    Attributes:
        dialect: Registered dialect name (``'ansi'``, ``'mysql'``,
            ``'postgresql'``).  Matched case-insensitively.
        fallback_to_ansi: When ``True`` an unknown dialect name compiles
            with the ANSI base dialect instead of raising
            :class:`~treeql.errors.UnknownDialectError`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    dialect: str = Field(default=BASE_DIALECT, min_length=1)
    fallback_to_ansi: bool = False

    @classmethod
    def parse(cls, data: dict[str, Any]) -> "BuilderOptions":
        """Validate ``data`` into options, raising treeQL's own error type.

        Raises:
            ValidationError: If ``data`` contains unknown keys or bad values.
        """
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Invalid builder options: {exc}",
                details={"errors": exc.errors(include_url=False)},
            ) from exc
