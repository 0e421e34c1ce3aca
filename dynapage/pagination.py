"""
Page structures produced by a Paginator.

A fetched page carries one record more than the page size so the paginator
can tell whether a next page exists. That extra record is kept in the output,
marked hidden, so every emitted page has the same shape.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .actions import NavigationAction
from .source import SourceRecord
from .state import NavigationSnapshot

T = TypeVar("T")


@dataclass(frozen=True)
class PageItem(Generic[T]):
    """
    A record as seen by the consumer of a paginator.

    Attributes:
        id: Identifier of the underlying record
        display_in_pagination: False for the overfetched tail record
        data: The untouched record payload
    """

    id: Any
    display_in_pagination: bool
    data: T


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One emitted page together with the navigation flags that belong to it.

    Attributes:
        items: All fetched items, including the hidden overfetch tail
        action: The navigation action that produced this page
        navigation: Flags computed for this page
    """

    items: list[PageItem[T]]
    action: NavigationAction
    navigation: NavigationSnapshot = field(default_factory=NavigationSnapshot)

    @property
    def visible_items(self) -> list[PageItem[T]]:
        return [item for item in self.items if item.display_in_pagination]

    @property
    def count(self) -> int:
        """Number of visible items."""
        return len(self.visible_items)

    @property
    def has_next(self) -> bool:
        return self.navigation.next_enabled

    @property
    def has_previous(self) -> bool:
        return self.navigation.previous_enabled


def to_page_items(records: Sequence[SourceRecord], page_size: int) -> list[PageItem[Any]]:
    """Wraps raw records, marking everything past ``page_size`` as not displayed."""
    return [
        PageItem(id=record.id, display_in_pagination=index < page_size, data=record.data)
        for index, record in enumerate(records)
    ]
