"""
Navigation vocabulary for Dynapage.

Defines the actions a paginator understands and the ordered sort and
filter entries it applies to every query.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

SortDirection = Literal["asc", "desc"]

FilterOperator = Literal[
    "<",
    "<=",
    "==",
    "!=",
    ">=",
    ">",
    "array-contains",
    "array-contains-any",
    "in",
    "not-in",
]


class NavigationAction(str, Enum):
    """The navigation requests a paginator can process."""

    CURRENT = "current"
    FIRST = "first"
    PREV = "prev"
    NEXT = "next"
    LAST = "last"
    RESET = "reset"

    @property
    def starts_over(self) -> bool:
        """True for actions that rebuild the canonical first page."""
        return self in (NavigationAction.FIRST, NavigationAction.RESET)


class SortEntry(BaseModel):
    """A single ordering criterion: field name plus direction."""

    model_config = ConfigDict(frozen=True)

    field: str
    direction: SortDirection = "asc"


class FilterEntry(BaseModel):
    """A single filter criterion: ``field op value``."""

    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOperator
    value: Any = None


def _coerce_entry(model: type[BaseModel], entry: Any) -> Any:
    if isinstance(entry, model):
        return entry
    if isinstance(entry, dict):
        return model.model_validate(entry)
    if isinstance(entry, (tuple, list)):
        names = list(model.model_fields)
        return model.model_validate(dict(zip(names, entry)))
    raise TypeError(f"Expected {model.__name__}, dict or tuple, got {type(entry).__name__}")


def coerce_sort_entry(entry: Any) -> SortEntry:
    """Accepts a SortEntry, a dict or a ``(field, direction)`` tuple."""
    return _coerce_entry(SortEntry, entry)


def coerce_filter_entry(entry: Any) -> FilterEntry:
    """Accepts a FilterEntry, a dict or a ``(field, op, value)`` tuple."""
    return _coerce_entry(FilterEntry, entry)


def coerce_sort(entries: Iterable[Any] | None) -> list[SortEntry] | None:
    if entries is None:
        return None
    return [coerce_sort_entry(entry) for entry in entries]


def coerce_filter(entries: Iterable[Any] | None) -> list[FilterEntry] | None:
    if entries is None:
        return None
    return [coerce_filter_entry(entry) for entry in entries]
