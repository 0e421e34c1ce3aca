"""
The Paginator: cursor-based navigation over a Collection.

Usage:
    from dynapage import MemoryCollection, Paginator

    articles = MemoryCollection(rows)
    paginator = Paginator(articles, page_size=10, sort=[("published", "desc")])
    paginator.subscribe(render)      # runs the initial "first" action
    paginator.next()                 # render() receives the next page

Processing model:
    Every navigation request is published into a single-slot ActionChannel.
    The active subscription's pipeline takes the latest action, builds a query,
    executes it, analyses the page and emits it. Actions published while a step
    is running (by the caller, from a callback, or as a corrective action) are
    not run re-entrantly: they replace the pending slot and run when the current
    step returns. Each action carries a generation number and a step whose
    generation is no longer the newest when its query returns is discarded, so
    anchors and flags always belong to the most recently issued action.
"""

from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

from ._logging import logger
from .actions import (
    FilterEntry,
    NavigationAction,
    SortEntry,
    coerce_filter,
    coerce_filter_entry,
    coerce_sort,
    coerce_sort_entry,
)
from .channel import ActionChannel
from .pagination import Page, PageItem, to_page_items
from .processor import PageAnalysis, process_page
from .query import build_query
from .source import Collection
from .state import NavigationSnapshot, PaginatorState, validate_page_size

T = TypeVar("T")

PageCallback = Callable[[Page[Any]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """
    Handle for one attached page consumer.

    Closed by unsubscribe(), by a newer subscribe() on the same paginator, or
    by a data source failure.
    """

    def __init__(
        self, paginator: "Paginator[Any]", on_page: PageCallback, on_error: ErrorCallback | None
    ) -> None:
        self._paginator = paginator
        self.on_page = on_page
        self.on_error = on_error
        self.closed = False

    def unsubscribe(self) -> None:
        self._paginator._detach(self)

    def __repr__(self) -> str:
        return f"Subscription(closed={self.closed})"


class Paginator(Generic[T]):
    """
    Drives first/prev/next/last navigation over an ordered, filterable collection.

    The paginator never knows the total size of the collection. It queries one
    record more than the page size and infers from the returned count and the
    first record's id whether neighbouring pages exist.

    Args:
        collection: Data source implementing the Collection protocol
        page_size: Visible records per page (>= 1)
        sort: Ordered sort entries; SortEntry, dicts or (field, direction) tuples
        filter: Ordered filter entries; FilterEntry, dicts or (field, op, value) tuples
        stalled: Start stalled; no query runs until resume()
    """

    def __init__(
        self,
        collection: Collection,
        page_size: int,
        sort: Iterable[Any] | None = None,
        filter: Iterable[Any] | None = None,
        stalled: bool = False,
    ) -> None:
        self._collection = collection
        self._state = PaginatorState(
            page_size=page_size,
            sort=coerce_sort(sort),
            filter=coerce_filter(filter),
            stalled=stalled,
        )
        self._channel = ActionChannel(NavigationAction.FIRST)
        self._subscription: Subscription | None = None

        self._generation = 0
        self._pending: tuple[int, NavigationAction] | None = None
        self._dispatching = False
        self._page: Page[T] | None = None

    # --- OUTPUT ---

    def subscribe(self, on_page: PageCallback, on_error: ErrorCallback | None = None) -> Subscription:
        """
        Attaches a page consumer and replays the latest action for it.

        A paginator feeds one consumer at a time; subscribing again closes the
        previous subscription and restarts the pipeline from the latest action.

        Args:
            on_page: Called with every emitted Page
            on_error: Called with a data source exception. The subscription is
                closed afterwards. Without it the exception is raised from the
                call that triggered the query.
        """
        if self._subscription is not None:
            self._detach(self._subscription)

        subscription = Subscription(self, on_page, on_error)
        self._subscription = subscription
        logger.debug("Subscribed", extra={"action": self._channel.latest.value})
        self._channel.subscribe(self._on_action)
        return subscription

    @property
    def page(self) -> Page[T] | None:
        """The most recently emitted page."""
        return self._page

    @property
    def items(self) -> list[PageItem[T]]:
        return list(self._page.items) if self._page is not None else []

    @property
    def navigation(self) -> NavigationSnapshot:
        return self._state.navigation.snapshot()

    @property
    def first_enabled(self) -> bool:
        return self._state.navigation.first_enabled

    @property
    def last_enabled(self) -> bool:
        return self._state.navigation.last_enabled

    @property
    def next_enabled(self) -> bool:
        return self._state.navigation.next_enabled

    @property
    def previous_enabled(self) -> bool:
        return self._state.navigation.previous_enabled

    @property
    def page_size(self) -> int:
        return self._state.page_size

    @property
    def sort(self) -> list[SortEntry] | None:
        return list(self._state.sort) if self._state.sort is not None else None

    @property
    def filter(self) -> list[FilterEntry] | None:
        return list(self._state.filter) if self._state.filter is not None else None

    @property
    def stalled(self) -> bool:
        return self._state.stalled

    @property
    def state(self) -> PaginatorState:
        """Detached copy of the internal state, for inspection."""
        return self._state.copy()

    # --- NAVIGATION ---

    def paginate(self, action: NavigationAction | str) -> None:
        self._channel.publish(action)

    def first(self) -> None:
        self.paginate(NavigationAction.FIRST)

    def last(self) -> None:
        self.paginate(NavigationAction.LAST)

    def next(self) -> None:
        self.paginate(NavigationAction.NEXT)

    def previous(self) -> None:
        self.paginate(NavigationAction.PREV)

    prev = previous

    # --- SETTINGS ---

    def set_sort(self, sort: Iterable[Any] | None) -> None:
        """Replaces all sort entries. The list is ordered: entries apply in sequence."""
        self._state.sort = coerce_sort(sort)
        self.paginate(NavigationAction.RESET)

    def set_sort_value(self, entry: Any) -> None:
        """Replaces the sort entry whose field matches; unknown fields change nothing."""
        entry = coerce_sort_entry(entry)
        for index, existing in enumerate(self._state.sort or ()):
            if existing.field == entry.field:
                self._state.sort[index] = entry  # type: ignore[index]
        self.paginate(NavigationAction.RESET)

    def set_filter(self, filter: Iterable[Any] | None) -> None:
        """Replaces all filter entries. The list is ordered: entries apply in sequence."""
        self._state.filter = coerce_filter(filter)
        self.paginate(NavigationAction.RESET)

    def set_filter_value(self, entry: Any) -> None:
        """Replaces the filter entry whose field matches; unknown fields change nothing."""
        entry = coerce_filter_entry(entry)
        for index, existing in enumerate(self._state.filter or ()):
            if existing.field == entry.field:
                self._state.filter[index] = entry  # type: ignore[index]
        self.paginate(NavigationAction.RESET)

    def set_page_size(self, page_size: int) -> None:
        self._state.page_size = validate_page_size(page_size)
        self.paginate(NavigationAction.CURRENT)

    def stall(self) -> None:
        """Stops querying. Actions issued while stalled are dropped, not queued."""
        self._state.stalled = True
        logger.debug("Paginator stalled")

    def resume(self) -> None:
        """
        Leaves the stalled mode.

        Coming out of a stall the data may be completely stale, so the
        paginator starts over with ``reset``. Calling resume() on a running
        paginator refreshes the current page instead (``current``), e.g. after
        data joined into the items changed.
        """
        if self._state.stalled:
            self._state.stalled = False
            logger.debug("Paginator resumed")
            self.paginate(NavigationAction.RESET)
        else:
            self.paginate(NavigationAction.CURRENT)

    # --- PIPELINE ---

    def _on_action(self, action: NavigationAction) -> None:
        self._generation += 1
        self._pending = (self._generation, action)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending is not None:
                generation, pending_action = self._pending
                self._pending = None
                self._step(generation, pending_action)
        finally:
            self._dispatching = False
            self._pending = None

    def _is_current(self, generation: int, subscription: Subscription) -> bool:
        return generation == self._generation and subscription is self._subscription

    def _step(self, generation: int, action: NavigationAction) -> None:
        subscription = self._subscription
        if subscription is None:
            # Nobody to deliver to; a later subscribe() replays the latest action
            logger.debug("No subscriber, action dropped", extra={"action": action.value})
            return
        state = self._state
        # Navigation is disabled while a page is being fetched.
        state.navigation.clear()
        logger.debug(
            "Navigation started",
            extra={"action": action.value, "page_size": state.page_size, "generation": generation},
        )

        if state.stalled:
            logger.debug("Paginator stalled, action dropped", extra={"action": action.value})
            return

        try:
            query = build_query(self._collection, action, state)
            records = list(query.execute())
        except Exception as exc:
            if not self._is_current(generation, subscription):
                logger.warning(
                    "Superseded query failed",
                    extra={"action": action.value, "generation": generation, "error": str(exc)},
                )
                return
            logger.warning(
                "Data source query failed",
                extra={"action": action.value, "generation": generation, "error": str(exc)},
            )
            self._detach(subscription)
            if subscription.on_error is None:
                raise
            subscription.on_error(exc)
            return

        if not self._is_current(generation, subscription):
            logger.debug(
                "Superseded result discarded",
                extra={"action": action.value, "generation": generation, "count": len(records)},
            )
            return

        analysis = process_page(action, records, state.page_size, state.first_item_id)
        if analysis.correction is not None:
            logger.info(
                "Corrective navigation",
                extra={
                    "action": action.value,
                    "correction": analysis.correction.value,
                    "count": len(records),
                    "page_size": state.page_size,
                },
            )
            self.paginate(analysis.correction)
            return

        self._apply(analysis)
        page: Page[T] = Page(
            items=to_page_items(records, state.page_size),
            action=action,
            navigation=state.navigation.snapshot(),
        )
        self._page = page
        logger.info(
            "Page emitted",
            extra={"action": action.value, "count": len(records), "page_size": state.page_size},
        )
        subscription.on_page(page)

    def _apply(self, analysis: PageAnalysis) -> None:
        state = self._state
        state.first_item_id = analysis.first_item_id
        state.navigation = analysis.navigation
        if analysis.has_records:
            state.prev_anchor = analysis.prev_anchor
            state.next_anchor = analysis.next_anchor

    def _detach(self, subscription: Subscription) -> None:
        if subscription.closed:
            return
        subscription.closed = True
        if self._subscription is subscription:
            self._subscription = None
            self._pending = None
            self._channel.detach(self._on_action)
        logger.debug("Unsubscribed")
