"""
Boundary detection for fetched pages.

The paginator never knows how large the collection is. It only sees the
records one query returned and has to decide from their count, and from the
id of the first record, whether neighbouring pages exist and whether the page
it landed on is consistent. When it is not (a backward scan ran past the
start, a forward scan ran past the end, a page vanished), the processor asks
for a corrective action instead of publishing the page.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .actions import NavigationAction
from .source import SourceRecord
from .state import NavigationState


@dataclass
class PageAnalysis:
    """
    Outcome of processing one fetched page.

    Attributes:
        correction: Action to run instead of publishing this page, or None
        first_item_id: First-page marker to keep after this page
        navigation: Flags computed for this page
        prev_anchor: Anchor for the next backward step (None when unchanged or absent)
        next_anchor: Anchor for the next forward step
        has_records: False when the query returned nothing
    """

    correction: NavigationAction | None
    first_item_id: Any | None
    navigation: NavigationState = field(default_factory=NavigationState)
    prev_anchor: Any | None = None
    next_anchor: Any | None = None
    has_records: bool = True


def process_page(
    action: NavigationAction | str,
    records: Sequence[SourceRecord],
    page_size: int,
    first_item_id: Any | None,
) -> PageAnalysis:
    """
    Analyses one overfetched page.

    Args:
        action: The action that produced the records
        records: Everything the query returned, overfetch included
        page_size: Visible records per page
        first_item_id: id of the first record on the canonical first page

    Returns:
        PageAnalysis; when ``correction`` is set the page must not be applied.
    """
    action = NavigationAction(action)
    navigation = NavigationState()

    if not records:
        # The requested page vanished underneath the cursor (data or filter
        # changed). Start over, unless we were starting over already.
        return PageAnalysis(
            correction=None if action.starts_over else NavigationAction.RESET,
            first_item_id=first_item_id,
            navigation=navigation,
            has_records=False,
        )

    overfetched = page_size + 1
    correction: NavigationAction | None = None

    if action.starts_over:
        first_item_id = records[0].id
    elif action is NavigationAction.PREV:
        navigation.next_enabled = navigation.last_enabled = True
        if len(records) < overfetched:
            # Paging backwards from a record that belongs on the first page
            # (e.g. prev from item 3 with a page size of 4) returns a short
            # page. Snap to the canonical first page.
            correction = NavigationAction.RESET
    elif action is NavigationAction.NEXT:
        if len(records) < overfetched and records[0].id != first_item_id:
            navigation.first_enabled = navigation.previous_enabled = True
            correction = NavigationAction.LAST

    navigation.last_enabled = navigation.next_enabled = len(records) == overfetched
    # TODO: first_item_id goes stale when a new record sorts ahead of it
    # between two first/reset calls; previous_enabled then stays True.
    navigation.first_enabled = navigation.previous_enabled = records[0].id != first_item_id

    return PageAnalysis(
        correction=correction,
        first_item_id=first_item_id,
        navigation=navigation,
        # records[1] because backward paging ends before this anchor and
        # queries one record extra
        prev_anchor=records[1].anchor if len(records) > 1 else None,
        # the overfetched record; forward paging starts at it
        next_anchor=records[-1].anchor,
    )
