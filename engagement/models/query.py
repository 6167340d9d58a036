"""
Query primitives for the event store read interface.

A read is described by a table, a list of :class:`Filter` conditions (all of
which must hold), an optional :class:`OrderBy` and an optional limit. Filters
are plain values so they can be logged, compared in tests, and translated by
any backend.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .enums import FilterOp

_VALUELESS_OPS = {FilterOp.IS_NULL, FilterOp.NOT_NULL}


class Filter(BaseModel):
    """
    Single field condition.

    Attributes:
        field: Column name the condition applies to
        op: Comparison operator
        value: Operand; a sequence for ``in``, unused for null checks
    """

    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOp
    value: Any = Field(default=None, validate_default=True)

    @field_validator("value")
    @classmethod
    def check_operand(cls, v: Any, info: ValidationInfo) -> Any:
        op = info.data.get("op")
        if op == FilterOp.IN:
            if isinstance(v, (str, bytes)) or not hasattr(v, "__iter__"):
                raise ValueError("'in' filter requires a sequence of values")
            return tuple(v)
        if op is not None and op not in _VALUELESS_OPS and v is None:
            raise ValueError(f"'{op.value}' filter requires a value")
        return v

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op=FilterOp.EQ, value=value)

    @classmethod
    def neq(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op=FilterOp.NEQ, value=value)

    @classmethod
    def ilike(cls, field: str, substring: str) -> "Filter":
        """Case-insensitive substring match."""
        return cls(field=field, op=FilterOp.ILIKE, value=substring)

    @classmethod
    def gte(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op=FilterOp.GTE, value=value)

    @classmethod
    def lte(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op=FilterOp.LTE, value=value)

    @classmethod
    def isin(cls, field: str, values: Any) -> "Filter":
        return cls(field=field, op=FilterOp.IN, value=tuple(values))

    @classmethod
    def is_null(cls, field: str) -> "Filter":
        return cls(field=field, op=FilterOp.IS_NULL)

    @classmethod
    def not_null(cls, field: str) -> "Filter":
        return cls(field=field, op=FilterOp.NOT_NULL)


class OrderBy(BaseModel):
    """Sort specification for ``select``."""

    model_config = ConfigDict(frozen=True)

    column: str
    descending: bool = Field(default=False)


def between(field: str, start: Any, end: Any) -> list[Filter]:
    """Inclusive range as a pair of filters."""
    return [Filter.gte(field, start), Filter.lte(field, end)]


def describe_filters(filters: Optional[list[Filter]]) -> list[str]:
    """Compact text form of filters for log context."""
    return [f"{f.field} {f.op.value} {f.value!r}" for f in filters or []]
