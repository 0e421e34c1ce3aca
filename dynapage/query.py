"""
Query construction for paginator actions.

Turns the paginator's held state (page size, sort, filter, anchors) plus one
navigation action into a bounded query against a Collection. Every action
except ``last`` overfetches one record so the page processor can detect an
adjacent page without a count query.
"""

from ._logging import logger, redact_key
from .actions import NavigationAction
from .source import Collection, CollectionQuery
from .state import PaginatorState


def apply_filter(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    """Applies the filter entries in order."""
    for entry in state.filter or ():
        query = query.filter_by(entry.field, entry.op, entry.value)
        logger.debug(
            "filterBy", extra={"field": entry.field, "op": entry.op, "value_hash": redact_key(entry.value)}
        )
    return query


def apply_sort(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    """Applies the sort entries in order."""
    for entry in state.sort or ():
        query = query.order_by(entry.field, entry.direction)
        logger.debug("orderBy", extra={"field": entry.field, "direction": entry.direction})
    return query


def query_first(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    return query.limit_first(state.page_size + 1)


def query_prev(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    if state.prev_anchor is None:
        return query_first(query, state)
    logger.debug("endBefore", extra={"anchor_hash": redact_key(state.prev_anchor)})
    return query.end_before(state.prev_anchor).limit_last(state.page_size + 1)


def query_next(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    if state.next_anchor is None:
        return query_first(query, state)
    # One extra record tells whether yet another page follows.
    logger.debug("startAt", extra={"anchor_hash": redact_key(state.next_anchor)})
    return query.start_at(state.next_anchor).limit_first(state.page_size + 1)


def query_last(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    # The last page has nothing after it, so no overfetch.
    return query.limit_last(state.page_size)


def query_current(query: CollectionQuery, state: PaginatorState) -> CollectionQuery:
    if state.prev_anchor is None:
        return query_first(query, state)
    logger.debug("startAt", extra={"anchor_hash": redact_key(state.prev_anchor)})
    return query.start_at(state.prev_anchor).limit_first(state.page_size + 1)


_BOUNDS = {
    NavigationAction.CURRENT: query_current,
    NavigationAction.FIRST: query_first,
    NavigationAction.RESET: query_first,
    NavigationAction.PREV: query_prev,
    NavigationAction.NEXT: query_next,
    NavigationAction.LAST: query_last,
}


def build_query(
    collection: Collection, action: NavigationAction | str, state: PaginatorState
) -> CollectionQuery:
    """
    Builds the query for one navigation action.

    Filters are applied before sorts (a composed query must be filtered
    before it is ordered), then the action-specific bounds.

    Args:
        collection: The data source to query
        action: Navigation action being processed
        state: Held paginator state; read only

    Returns:
        A query ready for execute()
    """
    action = NavigationAction(action)
    query = collection.query()
    query = apply_filter(query, state)
    query = apply_sort(query, state)
    query = _BOUNDS[action](query, state)
    logger.debug(
        "Query built", extra={"action": action.value, "page_size": state.page_size}
    )
    return query
