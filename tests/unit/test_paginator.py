"""
Unit tests for the Paginator against an in-memory collection.

Covers navigation, corrective re-navigation, the stall gate, settings
mutators, supersession of in-flight results and the error channel.
"""

import pytest

from dynapage import (
    InvalidPageSizeError,
    MemoryCollection,
    MemoryQuery,
    NavigationAction,
    Paginator,
    SortEntry,
)
from tests.conftest import PageRecorder, make_ranked


def rids(start, stop):
    return [f"r{i}" for i in range(start, stop + 1)]


class CountingCollection(MemoryCollection):
    """Memory collection counting how many queries were built."""

    def __init__(self, records):
        super().__init__(records)
        self.queries = 0

    def query(self):
        self.queries += 1
        return super().query()


class HookedQuery(MemoryQuery):
    """Runs a queued hook while the query is in flight."""

    def execute(self):
        if self.collection.hooks:
            # Runs while the query is "in flight"
            self.collection.hooks.pop(0)()
        yield from super().execute()


class HookedCollection(MemoryCollection):
    """Memory collection whose queries run hooks mid-execution."""

    def __init__(self, records):
        super().__init__(records)
        self.hooks = []

    def query(self):
        return HookedQuery(self)


class FailingQuery(MemoryQuery):
    """Raises the collection's configured error on execution."""

    def execute(self):
        if self.collection.fail_with is not None:
            raise self.collection.fail_with
        yield from super().execute()


class FailingCollection(MemoryCollection):
    """Memory collection that can be told to fail its queries."""

    def __init__(self, records):
        super().__init__(records)
        self.fail_with = None

    def query(self):
        return FailingQuery(self)


class TestForwardNavigation:
    """Test walking forward from the first page."""

    def test_first_page(self, paginator, recorder):
        """Test the first page shows page_size records plus one hidden."""
        assert recorder.actions == ["first"]
        assert recorder.visible_ids() == rids(1, 5)
        assert recorder.all_ids() == rids(1, 6)
        assert paginator.next_enabled is True
        assert paginator.last_enabled is True
        assert paginator.previous_enabled is False
        assert paginator.first_enabled is False

    def test_twelve_records_walk_to_last(self, paginator, recorder):
        """Test next() twice over twelve records snaps to the last page."""
        paginator.next()
        assert recorder.visible_ids() == rids(6, 10)
        assert paginator.next_enabled is True
        assert paginator.previous_enabled is True

        paginator.next()
        # [r11, r12] came back short: snapped to the canonical last page
        assert recorder.actions == ["first", "next", "last"]
        assert recorder.visible_ids() == rids(8, 12)
        assert recorder.all_ids() == rids(8, 12)
        assert paginator.next_enabled is False
        assert paginator.last_enabled is False
        assert paginator.first_enabled is True
        assert paginator.previous_enabled is True

    def test_last_page_directly(self, paginator, recorder):
        """Test last() fetches exactly page_size records, all displayed."""
        paginator.last()
        assert recorder.last.action is NavigationAction.LAST
        assert recorder.all_ids() == rids(8, 12)
        assert all(item.display_in_pagination for item in recorder.last.items)

    def test_next_from_last_page_lands_on_last_again(self, paginator, recorder):
        """Test next() on the last page corrects back to last."""
        paginator.last()
        paginator.next()
        assert recorder.actions == ["first", "last", "last"]
        assert recorder.visible_ids() == rids(8, 12)

    def test_page_snapshot_matches_flags(self, paginator, recorder):
        """Test the emitted page carries the flags the paginator reports."""
        paginator.next()
        assert recorder.last.navigation == paginator.navigation
        assert paginator.page is recorder.last
        assert [item.id for item in paginator.items] == rids(6, 11)


class TestBackwardNavigation:
    """Test walking backward and resetting at the start."""

    def test_prev_returns_to_first_page(self, paginator, recorder):
        """Test prev() after next() shows the first page again."""
        paginator.next()
        paginator.previous()
        assert recorder.actions == ["first", "next", "prev"]
        assert recorder.visible_ids() == rids(1, 5)
        assert recorder.all_ids() == rids(1, 6)
        assert paginator.previous_enabled is False
        assert paginator.next_enabled is True

    def test_prev_past_start_resets(self, paginator, recorder):
        """Test a short prev() page resets to the first page."""
        paginator.last()
        paginator.prev()
        assert recorder.visible_ids() == rids(3, 7)
        assert paginator.previous_enabled is True

        paginator.prev()
        # [r1..r3] came back short: snapped to the canonical first page
        assert recorder.actions == ["first", "last", "prev", "reset"]
        assert recorder.visible_ids() == rids(1, 5)
        assert paginator.first_enabled is False
        assert paginator.previous_enabled is False

    def test_next_after_prev_from_last(self, paginator, recorder):
        """Test next() after prev() from the last page reaches last again."""
        paginator.last()
        paginator.prev()
        paginator.next()
        assert recorder.actions[-1] == "last"
        assert recorder.visible_ids() == rids(8, 12)

    def test_prev_alias(self):
        """Test prev is an alias of previous."""
        assert Paginator.prev is Paginator.previous


class TestProperties:
    """Test invariants that hold across navigation sequences."""

    def test_first_is_idempotent(self, paginator, recorder):
        """Test repeated first() calls emit identical pages."""
        paginator.next()
        paginator.first()
        paginator.first()
        assert recorder.all_ids(-1) == recorder.all_ids(-2) == rids(1, 6)
        assert recorder.pages[-1].navigation == recorder.pages[-2].navigation

    @pytest.mark.parametrize("page_size", [1, 2, 3, 5])
    @pytest.mark.parametrize("size", [0, 1, 3, 7, 10])
    def test_forward_walk_invariants(self, page_size, size):
        """Test count and flag invariants on every page of a forward walk."""
        recorder = PageRecorder()
        pager = Paginator(MemoryCollection(make_ranked(size)), page_size, sort=[("rank", "asc")])
        pager.subscribe(recorder)

        for _ in range(size + 2):
            page = recorder.last
            assert page.count <= page_size
            if page.action is NavigationAction.LAST:
                assert len(page.items) <= page_size
                assert all(item.display_in_pagination for item in page.items)
            else:
                assert pager.next_enabled == (len(page.items) == page_size + 1)
            assert pager.last_enabled == pager.next_enabled
            if page.items:
                first_id = pager.state.first_item_id
                assert pager.previous_enabled == (page.items[0].id != first_id)
            if not pager.next_enabled:
                break
            pager.next()

        assert pager.next_enabled is False

    def test_previous_invariant_over_mixed_navigation(self, paginator, recorder):
        """Test previous_enabled tracks the first item id over mixed moves."""
        for step in ["next", "next", "prev", "last", "prev", "prev", "first", "next", "prev"]:
            paginator.paginate(step)
            first_id = paginator.state.first_item_id
            assert paginator.previous_enabled == (recorder.last.items[0].id != first_id)
            assert paginator.first_enabled == paginator.previous_enabled


class TestDataChanges:
    """Test corrective navigation when the collection changes."""

    def test_empty_collection(self, recorder):
        """Test an empty collection emits an empty page with flags off."""
        pager = Paginator(MemoryCollection([]), page_size=5)
        pager.subscribe(recorder)
        pager.next()

        assert recorder.actions == ["first", "reset"]
        assert recorder.last.items == []
        assert pager.navigation.next_enabled is False
        assert pager.navigation.previous_enabled is False

    def test_vanished_page_resets(self, collection, paginator, recorder):
        """Test next() onto deleted records resets to the first page."""
        for i in range(6, 13):
            collection.remove(f"r{i}")
        paginator.next()

        assert recorder.actions == ["first", "reset"]
        assert recorder.visible_ids() == rids(1, 5)
        assert paginator.next_enabled is False

    def test_anchors_survive_deleted_anchor_record(self, collection, paginator, recorder):
        """Test next() still works when its anchor record was removed."""
        collection.remove("r6")
        paginator.next()
        assert recorder.visible_ids() == rids(7, 11)


class TestSettings:
    """Test page size, sort and filter mutators."""

    def test_set_page_size_refreshes_current(self, paginator, recorder):
        """Test a new page size re-queries the current position."""
        paginator.next()
        paginator.set_page_size(3)

        assert recorder.last.action is NavigationAction.CURRENT
        assert paginator.page_size == 3
        assert recorder.visible_ids() == ["r7", "r8", "r9"]
        assert recorder.all_ids() == ["r7", "r8", "r9", "r10"]
        assert paginator.next_enabled is True
        assert paginator.previous_enabled is True

    @pytest.mark.parametrize("page_size", [0, -1, 1.5])
    def test_set_invalid_page_size(self, paginator, recorder, page_size):
        """Test invalid page sizes raise and leave the paginator untouched."""
        with pytest.raises(InvalidPageSizeError):
            paginator.set_page_size(page_size)
        assert paginator.page_size == 5
        assert len(recorder.pages) == 1

    def test_constructor_rejects_invalid_page_size(self, collection):
        """Test the constructor validates the page size."""
        with pytest.raises(InvalidPageSizeError):
            Paginator(collection, page_size=0)

    def test_set_filter_resets(self, paginator, recorder):
        """Test a new filter resets to the first filtered page."""
        paginator.next()
        paginator.set_filter([("group", "==", "a")])

        assert recorder.last.action is NavigationAction.RESET
        assert recorder.visible_ids() == ["r1", "r3", "r5", "r7", "r9"]
        assert paginator.next_enabled is True

    def test_set_filter_without_matches(self, paginator, recorder):
        """Test a filter matching nothing emits an empty page."""
        paginator.set_filter([("group", "==", "z")])
        assert recorder.last.action is NavigationAction.RESET
        assert recorder.last.items == []
        assert paginator.next_enabled is False

    def test_set_filter_value_replaces_matching_field(self, paginator, recorder):
        """Test set_filter_value swaps the entry for the same field."""
        paginator.set_filter([("group", "==", "a"), ("rank", ">", 2)])
        paginator.set_filter_value(("group", "==", "b"))

        assert [entry.value for entry in paginator.filter] == ["b", 2]
        assert recorder.visible_ids() == ["r4", "r6", "r8", "r10", "r12"]

    def test_set_filter_value_unknown_field_changes_nothing(self, paginator, recorder):
        """Test set_filter_value with an unknown field keeps the filter but still resets."""
        paginator.set_filter([("group", "==", "a")])
        before = paginator.filter
        paginator.set_filter_value(("colour", "==", "red"))

        assert paginator.filter == before
        assert recorder.last.action is NavigationAction.RESET

    def test_set_filter_value_without_filter(self, paginator, recorder):
        """Test set_filter_value does nothing when no filter is set."""
        paginator.set_filter_value(("group", "==", "a"))
        assert paginator.filter is None
        assert recorder.visible_ids() == rids(1, 5)

    def test_set_sort_resets(self, paginator, recorder):
        """Test a new sort resets to the first page of the new order."""
        paginator.next()
        paginator.set_sort([("rank", "desc")])

        assert recorder.last.action is NavigationAction.RESET
        assert recorder.visible_ids() == ["r12", "r11", "r10", "r9", "r8"]
        assert paginator.previous_enabled is False
        assert paginator.state.first_item_id == "r12"

    def test_set_sort_value(self, paginator, recorder):
        """Test set_sort_value swaps the entry for the same field."""
        paginator.set_sort_value(SortEntry(field="rank", direction="desc"))
        assert paginator.sort == [SortEntry(field="rank", direction="desc")]
        assert recorder.visible_ids()[0] == "r12"

    def test_set_sort_value_unknown_field(self, paginator):
        """Test set_sort_value with an unknown field keeps the sort."""
        paginator.set_sort_value(("name", "desc"))
        assert paginator.sort == [SortEntry(field="rank", direction="asc")]

    def test_read_only_copies(self, paginator):
        """Test sort and filter accessors return copies."""
        paginator.sort.append(SortEntry(field="x"))
        assert len(paginator.sort) == 1


class TestStallGate:
    """Test stall() and resume()."""

    def test_stalled_paginator_never_queries(self, ranked_records, recorder):
        """Test a stalled paginator drops actions without querying."""
        collection = CountingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")], stalled=True)
        pager.subscribe(recorder)
        pager.next()

        assert recorder.pages == []
        assert collection.queries == 0
        assert pager.stalled is True

    def test_resume_from_stall_resets(self, ranked_records, recorder):
        """Test resume() after a stall resets to the first page."""
        pager = Paginator(MemoryCollection(ranked_records), 5, sort=[("rank", "asc")], stalled=True)
        pager.subscribe(recorder)
        pager.next()
        pager.resume()

        assert pager.stalled is False
        assert recorder.actions == ["reset"]
        assert recorder.visible_ids() == rids(1, 5)

    def test_resume_while_active_refreshes_current(self, paginator, recorder):
        """Test resume() without a stall re-queries the current position."""
        paginator.resume()

        assert recorder.last.action is NavigationAction.CURRENT
        # current restarts at the held prev anchor (second record of the page)
        assert recorder.visible_ids() == rids(2, 6)
        assert paginator.previous_enabled is True

    def test_stall_drops_actions_and_clears_flags(self, paginator, recorder):
        """Test actions while stalled clear the flags and emit nothing."""
        assert paginator.next_enabled is True
        paginator.stall()
        paginator.next()
        paginator.last()

        assert recorder.actions == ["first"]
        assert paginator.next_enabled is False
        assert paginator.previous_enabled is False

        paginator.resume()
        assert recorder.actions == ["first", "reset"]
        assert paginator.next_enabled is True

    def test_stall_issues_nothing(self, ranked_records, recorder):
        """Test stall() itself runs no query."""
        collection = CountingCollection(ranked_records)
        pager = Paginator(collection, page_size=5)
        pager.subscribe(recorder)
        pager.stall()
        assert collection.queries == 1
        assert len(recorder.pages) == 1


class TestSupersession:
    """Test that newer actions win over in-flight ones."""

    def test_in_flight_result_is_discarded(self, ranked_records, recorder):
        """Test a result overtaken by a newer action is neither applied nor emitted."""
        collection = HookedCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])
        pager.subscribe(recorder)

        collection.hooks.append(pager.last)
        pager.next()

        assert recorder.actions == ["first", "last"]
        assert recorder.visible_ids() == rids(8, 12)
        state = pager.state
        assert state.prev_anchor["id"] == "r9"
        assert state.next_anchor["id"] == "r12"

    def test_corrective_action_goes_through_channel(self, paginator, recorder):
        """Test a correction becomes the latest action on the channel."""
        paginator.next()
        paginator.next()

        replay = PageRecorder()
        paginator.subscribe(replay)
        assert replay.actions == ["last"]

    def test_navigation_from_callback_is_queued(self, collection):
        """Test navigation requested in on_page runs after the callback returns."""
        seen = []
        depth = []
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])

        def on_page(page):
            depth.append(len(seen))
            seen.append(page.action.value)
            if len(seen) == 1:
                pager.next()
            depth.append(len(seen))

        pager.subscribe(on_page)
        assert seen == ["first", "next"]
        # Second page was delivered after the first callback returned
        assert depth == [0, 1, 1, 2]


class TestSubscriptions:
    """Test subscribing, replacing and unsubscribing consumers."""

    def test_nothing_runs_before_subscribe(self, ranked_records):
        """Test no query runs until a consumer subscribes."""
        collection = CountingCollection(ranked_records)
        pager = Paginator(collection, page_size=5)
        pager.next()
        assert collection.queries == 0
        assert pager.page is None
        assert pager.items == []

    def test_unsubscribe_stops_delivery(self, paginator, recorder):
        """Test an unsubscribed consumer receives no more pages."""
        subscription = paginator.subscribe(recorder, recorder.on_error)
        subscription.unsubscribe()
        paginator.next()

        assert subscription.closed is True
        assert recorder.actions == ["first", "first"]

    def test_subscribe_replaces_previous(self, paginator, recorder):
        """Test a second subscribe() closes the first subscription."""
        other = PageRecorder()
        first_subscription = paginator.subscribe(other)
        second = PageRecorder()
        paginator.subscribe(second)
        paginator.next()

        assert first_subscription.closed is True
        assert other.actions == ["first"]
        assert second.actions == ["first", "next"]

    def test_resubscribe_replays_latest_action(self, paginator, recorder):
        """Test a new subscription runs the latest action."""
        paginator.subscribe(recorder).unsubscribe()
        paginator.next()
        replay = PageRecorder()
        paginator.subscribe(replay)

        assert replay.actions == ["next"]

    def test_action_queued_before_unsubscribe_does_not_run(self, ranked_records):
        """Test navigation requested by a consumer that then leaves is left for the next one."""
        collection = CountingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")], stalled=True)
        seen = []

        def on_page(page):
            seen.append(page.action.value)
            pager.next()
            subscription.unsubscribe()

        subscription = pager.subscribe(on_page)
        pager.resume()

        assert seen == ["reset"]
        assert collection.queries == 1
        assert pager.page.action is NavigationAction.RESET
        assert pager.state.next_anchor["id"] == "r6"

        recorder = PageRecorder()
        pager.subscribe(recorder)
        assert recorder.actions == ["next"]
        assert recorder.visible_ids() == rids(6, 10)


class TestErrors:
    """Test routing of data source errors."""

    def test_source_error_goes_to_on_error_unmodified(self, ranked_records, recorder):
        """Test a source error reaches on_error as raised and closes the subscription."""
        collection = FailingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])
        subscription = pager.subscribe(recorder, recorder.on_error)

        error = ConnectionError("permission denied")
        collection.fail_with = error
        pager.next()

        assert recorder.errors == [error]
        assert recorder.errors[0] is error
        assert subscription.closed is True
        assert recorder.actions == ["first"]

    def test_errored_subscription_is_terminal(self, ranked_records, recorder):
        """Test a closed subscription receives nothing after its error."""
        collection = FailingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])
        pager.subscribe(recorder, recorder.on_error)
        collection.fail_with = RuntimeError("boom")
        pager.next()
        collection.fail_with = None
        pager.next()

        assert len(recorder.errors) == 1
        assert recorder.actions == ["first"]

    def test_resubscribe_after_error(self, ranked_records, recorder):
        """Test subscribing again after an error replays the failed action."""
        collection = FailingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])
        pager.subscribe(recorder, recorder.on_error)
        collection.fail_with = RuntimeError("boom")
        pager.next()

        collection.fail_with = None
        pager.subscribe(recorder, recorder.on_error)
        assert recorder.actions == ["first", "next"]
        assert recorder.visible_ids() == rids(6, 10)

    def test_error_raised_without_handler(self, ranked_records):
        """Test the error propagates when no on_error is given."""
        collection = FailingCollection(ranked_records)
        collection.fail_with = RuntimeError("boom")
        pager = Paginator(collection, page_size=5)

        with pytest.raises(RuntimeError, match="boom"):
            pager.subscribe(lambda page: None)

    def test_error_keeps_previous_state(self, ranked_records, recorder):
        """Test a failed query leaves anchors and the last page untouched."""
        collection = FailingCollection(ranked_records)
        pager = Paginator(collection, page_size=5, sort=[("rank", "asc")])
        pager.subscribe(recorder, recorder.on_error)
        anchor = pager.state.next_anchor
        collection.fail_with = RuntimeError("boom")
        pager.next()

        assert pager.state.next_anchor == anchor
        assert pager.page is recorder.last
