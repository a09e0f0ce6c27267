"""Pydantic models for structured operator options.

Most operators take a scalar or a free-form subtree, but a few take a fixed
option block.  Those blocks are validated here so unknown keys and wrongly
typed values are rejected before anything is rendered.

``$outfile`` (MySQL)::

    {
        "$file": "/tmp/people.txt",
        "$fields": {"$terminatedBy": ",", "$enclosedBy": '"', "$escapedBy": "\\\\"},
        "$lines": {"$startingBy": "", "$terminatedBy": "\\n"},
    }
"""
from __future__ import annotations

from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictStr

from treeql.errors import ValidationError

_Model = TypeVar("_Model", bound=BaseModel)


class _OptionBlock(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class FieldsOptions(_OptionBlock):
    """``FIELDS`` sub-options, rendered in declaration order.

    Attributes:
        terminated_by: ``FIELDS TERMINATED BY``.
        enclosed_by: ``ENCLOSED BY``.
        escaped_by: ``ESCAPED BY``.
    """

    terminated_by: StrictStr | None = Field(default=None, alias="$terminatedBy")
    enclosed_by: StrictStr | None = Field(default=None, alias="$enclosedBy")
    escaped_by: StrictStr | None = Field(default=None, alias="$escapedBy")


class LinesOptions(_OptionBlock):
    """``LINES`` sub-options, rendered in declaration order.

    Attributes:
        starting_by: ``LINES STARTING BY``.
        terminated_by: ``TERMINATED BY``.
    """

    starting_by: StrictStr | None = Field(default=None, alias="$startingBy")
    terminated_by: StrictStr | None = Field(default=None, alias="$terminatedBy")


class OutfileOptions(_OptionBlock):
    """Options for ``SELECT ... INTO OUTFILE``.

    Attributes:
        file: Target file path (bound, never inlined).
        fields: Column formatting options.
        lines: Row formatting options.
    """

    file: StrictStr = Field(alias="$file", min_length=1)
    fields: FieldsOptions | None = Field(default=None, alias="$fields")
    lines: LinesOptions | None = Field(default=None, alias="$lines")


def parse_options(model: type[_Model], data: Any, operator: str) -> _Model:
    """Validate ``data`` into ``model``.

    Raises:
        ValidationError: With pydantic's error list under ``details``.
    """
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid '{operator}' options: {exc.error_count()} error(s).",
            operator=operator,
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
