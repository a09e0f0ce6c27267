"""Pydantic models for structured operator options."""
from treeql.schema.options import (
    FieldsOptions,
    LinesOptions,
    OutfileOptions,
    parse_options,
)

__all__ = [
    "FieldsOptions",
    "LinesOptions",
    "OutfileOptions",
    "parse_options",
]
