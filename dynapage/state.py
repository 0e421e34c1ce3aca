from dataclasses import dataclass, field, replace
from typing import Any

from .actions import FilterEntry, SortEntry
from .exceptions import InvalidPageSizeError


@dataclass
class NavigationState:
    """
    Availability flags for the four navigation controls.

    Derived from the last processed page; the paginator clears them at the
    start of every navigation cycle and sets them again before emitting.
    """

    first_enabled: bool = False
    last_enabled: bool = False
    next_enabled: bool = False
    previous_enabled: bool = False

    def clear(self) -> None:
        self.first_enabled = self.last_enabled = False
        self.next_enabled = self.previous_enabled = False

    def snapshot(self) -> "NavigationSnapshot":
        return NavigationSnapshot(
            first_enabled=self.first_enabled,
            last_enabled=self.last_enabled,
            next_enabled=self.next_enabled,
            previous_enabled=self.previous_enabled,
        )


@dataclass(frozen=True)
class NavigationSnapshot:
    """Read-only copy of NavigationState handed out with every emitted page."""

    first_enabled: bool = False
    last_enabled: bool = False
    next_enabled: bool = False
    previous_enabled: bool = False


def validate_page_size(page_size: Any) -> int:
    # bool is an int subclass, but True is not a page size
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise InvalidPageSizeError(page_size)
    return page_size


@dataclass
class PaginatorState:
    """
    Everything a Paginator remembers between navigation cycles.

    Owned by a single Paginator and only mutated inside its processing step
    or by its own mutator methods.
    """

    page_size: int
    sort: list[SortEntry] | None = None
    filter: list[FilterEntry] | None = None
    stalled: bool = False

    # id of the first record on the canonical first page
    first_item_id: Any | None = None
    # second record of the last page, bound for backward paging
    prev_anchor: Any | None = None
    # last (overfetched) record of the last page, start for forward paging
    next_anchor: Any | None = None

    navigation: NavigationState = field(default_factory=NavigationState)

    def __post_init__(self) -> None:
        self.page_size = validate_page_size(self.page_size)

    def copy(self) -> "PaginatorState":
        """Returns a detached copy, used for read-only inspection."""
        return replace(
            self,
            sort=list(self.sort) if self.sort is not None else None,
            filter=list(self.filter) if self.filter is not None else None,
            navigation=replace(self.navigation),
        )
