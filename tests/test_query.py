"""Tests for listing filtering, ranking and request-triggered refreshes."""

import threading
from datetime import timedelta

import pytest

from deal_hunter.query import ListingQuery, QueryEngine, QueryError, rank_listings
from deal_hunter.refresh import RefreshCoordinator
from deal_hunter.sources.base import ExtractionError

from conftest import FakeExtractor, make_listing


def ending_in(clock, hours, **fields):
    record = {"title": "2003 BMW M5", "current_bid": 20000, "ends_at": (clock.now + timedelta(hours=hours)).isoformat()}
    record.update(fields)
    return record


def make_engine(extractor, clock, wait=5.0):
    coordinator = RefreshCoordinator(extractor, clock=clock, stale_after=timedelta(minutes=20), extract_timeout=5)
    return coordinator, QueryEngine(coordinator, empty_wait_timeout=wait)


class TestListingQuery:
    def test_defaults(self):
        query = ListingQuery.from_args({})
        assert query == ListingQuery(close_hours=24.0, min_discount=0.0, max_budget=None, no_reserve_only=False)

    def test_parses_query_strings(self):
        query = ListingQuery.from_args(
            {"closeHours": "12", "minDiscount": "15", "maxBudget": "50000", "noReserveOnly": "true"}
        )
        assert query == ListingQuery(close_hours=12.0, min_discount=15.0, max_budget=50000.0, no_reserve_only=True)

    def test_bad_values_fall_back_to_defaults(self):
        query = ListingQuery.from_args({"closeHours": "soon", "minDiscount": "", "maxBudget": "lots", "noReserveOnly": "nah"})
        assert query == ListingQuery()

    def test_filter_clauses(self):
        query = ListingQuery(close_hours=10, min_discount=20, max_budget=15000, no_reserve_only=True)
        assert query.matches(make_listing(hours_left=10, discount_pct=20, current_bid=15000, no_reserve=True))
        assert not query.matches(make_listing(hours_left=10.5, discount_pct=20, current_bid=15000, no_reserve=True))
        assert not query.matches(make_listing(hours_left=10, discount_pct=19, current_bid=15000, no_reserve=True))
        assert not query.matches(make_listing(hours_left=10, discount_pct=20, current_bid=15001, no_reserve=True))
        assert not query.matches(make_listing(hours_left=10, discount_pct=20, current_bid=15000, no_reserve=False))

    def test_min_discount_excludes_negative_discounts(self):
        assert not ListingQuery().matches(make_listing(discount_pct=-5))
        assert ListingQuery(min_discount=-10).matches(make_listing(discount_pct=-5))


class TestRankListings:
    def test_sorted_by_deal_score(self):
        listings = [make_listing("a", 10), make_listing("b", 90), make_listing("c", 50)]
        assert [listing.id for listing in rank_listings(listings)] == ["b", "c", "a"]

    def test_ties_keep_cache_order(self):
        listings = [make_listing("a", 50), make_listing("b", 70), make_listing("c", 50), make_listing("d", 50)]
        ranked = rank_listings(listings)
        assert [listing.id for listing in ranked] == ["b", "a", "c", "d"]
        assert ranked == rank_listings(listings)


class TestQueryEngine:
    def test_filters_and_sorts_cached_listings(self, clock):
        records = [ending_in(clock, 30), ending_in(clock, 10), ending_in(clock, 1)]
        coordinator, engine = make_engine(FakeExtractor(records), clock)
        coordinator.refresh()

        result = engine.search(ListingQuery(close_hours=24))

        assert [round(listing.hours_left) for listing in result.listings] == [1, 10]
        assert [listing.deal_score for listing in result.listings] == [80, 65]
        assert result.total == 2
        assert result.last_refreshed_at == clock.now
        assert result.refreshing is False

    def test_fresh_cache_does_not_trigger_refresh(self, clock):
        extractor = FakeExtractor([ending_in(clock, 1)])
        coordinator, engine = make_engine(extractor, clock)
        coordinator.refresh()

        engine.search()
        assert extractor.calls == 1

    def test_empty_cache_waits_for_refresh(self, clock):
        extractor = FakeExtractor([ending_in(clock, 1), ending_in(clock, 5)])
        _, engine = make_engine(extractor, clock)

        result = engine.search()

        assert extractor.calls == 1
        assert result.total == 2

    def test_refresh_committing_between_reads_is_picked_up(self, clock):
        class CommitsAfterFirstRead(RefreshCoordinator):
            raced = False

            def snapshot(self):
                snap = super().snapshot()
                if snap.is_empty and not self.raced:
                    self.raced = True
                    self.refresh("concurrent")
                return snap

        extractor = FakeExtractor([ending_in(clock, 1), ending_in(clock, 5)])
        coordinator = CommitsAfterFirstRead(extractor, clock=clock, extract_timeout=5)
        engine = QueryEngine(coordinator, empty_wait_timeout=5)

        result = engine.search()

        assert result.total == 2
        coordinator.wait_for_refresh(5)

    def test_empty_cache_with_failed_refresh_raises(self, clock):
        _, engine = make_engine(FakeExtractor(error=ExtractionError("site changed")), clock)

        with pytest.raises(QueryError, match="site changed"):
            engine.search()

    def test_empty_cache_wait_is_bounded(self, clock):
        gate = threading.Event()
        extractor = FakeExtractor([ending_in(clock, 1)], gate=gate)
        coordinator, engine = make_engine(extractor, clock, wait=0.05)

        result = engine.search()

        assert result.total == 0
        assert result.refreshing is True
        gate.set()
        coordinator.wait_for_refresh(5)

    def test_stale_cache_served_while_refreshing(self, clock):
        extractor = FakeExtractor([ending_in(clock, 1)])
        coordinator, engine = make_engine(extractor, clock)
        coordinator.refresh()
        before = coordinator.snapshot()

        gate = threading.Event()
        extractor.gate = gate
        extractor.started.clear()
        clock.advance(minutes=30)

        result = engine.search(ListingQuery(close_hours=1000))

        assert extractor.started.wait(2)
        assert extractor.calls == 2
        assert list(result.listings) == list(before.listings)
        gate.set()
        assert coordinator.wait_for_refresh(5)
        assert coordinator.snapshot().last_refreshed_at == clock.now

    def test_stale_cache_with_error_still_served(self, clock):
        extractor = FakeExtractor([ending_in(clock, 1)])
        coordinator, engine = make_engine(extractor, clock)
        coordinator.refresh()

        extractor.error = ExtractionError("down")
        clock.advance(minutes=30)
        coordinator.refresh()

        result = engine.search(ListingQuery(close_hours=1000))
        assert result.total == 1
        coordinator.wait_for_refresh(5)

    def test_top(self, clock):
        records = [ending_in(clock, 30), ending_in(clock, 1), ending_in(clock, 10)]
        coordinator, engine = make_engine(FakeExtractor(records), clock)
        coordinator.refresh()

        assert [listing.deal_score for listing in engine.top(2)] == [80, 65]
        assert engine.top(5, ListingQuery(close_hours=5))[0].deal_score == 80
