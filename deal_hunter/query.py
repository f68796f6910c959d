"""
Query module for Deal Hunter.

Filters and ranks cached listings for the listings API and the daily digest.
Reading the cache is also where request-triggered refreshes come from: a
query against an empty or stale cache kicks off a background refresh, and a
query against an empty cache waits (bounded) for it to land.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional

from .models import Listing
from .refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

TRUE_STRINGS = ("1", "true", "yes", "on")


class QueryError(Exception):
    """The cache is empty and the last refresh failed."""


@dataclass(frozen=True)
class ListingQuery:
    """Filter parameters for a listings request."""
    close_hours: float = 24.0
    min_discount: float = 0.0
    max_budget: Optional[float] = None
    no_reserve_only: bool = False

    @classmethod
    def from_args(cls, args: Mapping) -> "ListingQuery":
        """
        Build a query from HTTP query-string values.

        Unparseable numbers fall back to the defaults instead of failing the request.
        """
        def number(name: str, default):
            value = args.get(name)
            if value is None or str(value).strip() == "":
                return default
            try:
                return float(value)
            except (TypeError, ValueError):
                return default

        no_reserve = args.get("noReserveOnly")
        return cls(
            close_hours=number("closeHours", cls.close_hours),
            min_discount=number("minDiscount", cls.min_discount),
            max_budget=number("maxBudget", None),
            no_reserve_only=str(no_reserve).strip().lower() in TRUE_STRINGS if no_reserve is not None else False,
        )

    def matches(self, listing: Listing) -> bool:
        if listing.hours_left > self.close_hours:
            return False
        if listing.discount_pct < self.min_discount:
            return False
        if self.max_budget is not None and listing.current_bid > self.max_budget:
            return False
        if self.no_reserve_only and not listing.no_reserve:
            return False
        return True


@dataclass(frozen=True)
class QueryResult:
    """Ranked listings plus the cache metadata the API reports alongside them."""
    listings: list[Listing]
    last_refreshed_at: Optional[datetime]
    refreshing: bool

    @property
    def total(self) -> int:
        return len(self.listings)

    def to_dict(self) -> dict:
        return {
            "listings": [listing.to_dict() for listing in self.listings],
            "total": self.total,
            "lastScraped": self.last_refreshed_at.isoformat() if self.last_refreshed_at else None,
            "scraping": self.refreshing,
        }


def rank_listings(listings: Iterable[Listing], query: Optional[ListingQuery] = None) -> list[Listing]:
    """Filter by query (if given) and sort by deal score, best first; ties keep cache order."""
    if query is not None:
        listings = (listing for listing in listings if query.matches(listing))
    return sorted(listings, key=lambda listing: listing.deal_score, reverse=True)


class QueryEngine:
    """
    Serves filtered, ranked views of the coordinator's cache.

    Usage:
        engine = QueryEngine(coordinator)
        result = engine.search(ListingQuery(close_hours=12))
    """

    def __init__(self, coordinator: RefreshCoordinator, empty_wait_timeout: float = 60.0):
        self.coordinator = coordinator
        self.empty_wait_timeout = empty_wait_timeout

    def search(self, query: Optional[ListingQuery] = None) -> QueryResult:
        """
        Filter and rank the cached listings.

        Raises:
            QueryError: If the cache is still empty and the last refresh failed
        """
        query = query or ListingQuery()
        snap = self.coordinator.snapshot()

        if self.coordinator.is_stale(snapshot=snap):
            self.coordinator.trigger("stale-query")

            if snap.is_empty:
                logger.info(f"Cache empty, waiting up to {self.empty_wait_timeout:.0f}s for refresh")
                if not self.coordinator.wait_for_refresh(self.empty_wait_timeout):
                    logger.warning("Timed out waiting for refresh, serving what is cached")

            snap = self.coordinator.snapshot()

        if snap.is_empty and snap.last_error:
            raise QueryError(snap.last_error)

        return QueryResult(
            listings=rank_listings(snap.listings, query),
            last_refreshed_at=snap.last_refreshed_at,
            refreshing=snap.refreshing,
        )

    def top(self, n: int, query: Optional[ListingQuery] = None) -> list[Listing]:
        """Best n listings of the current cache; never triggers or waits."""
        return rank_listings(self.coordinator.snapshot().listings, query)[:n]
