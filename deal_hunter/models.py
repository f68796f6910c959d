"""
Data models for Deal Hunter.

Defines the canonical dataclasses that every extraction strategy normalizes
into, plus the immutable cache snapshot shared by the refresh coordinator and
the query engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum


DEFAULT_LOCATION = "United States"
DEFAULT_HOURS_LEFT = 48.0


class RefreshState(str, Enum):
    """Lifecycle of the listing cache refresh."""
    IDLE = "idle"
    REFRESHING = "refreshing"
    FAILED = "failed"  # Last attempt failed; the next trigger is still accepted


@dataclass(frozen=True)
class VehicleTitle:
    """Year/make/model/trim split out of a free-text auction title."""
    year: int = 0
    make: str = ""
    model: str = ""
    trim: str = ""


@dataclass(frozen=True)
class Listing:
    """
    Canonical representation of one vehicle auction.

    Listings are created by the normalizer and never mutated afterwards;
    a refresh builds an entirely new collection.
    """
    # Synthetic identifier (unique within one refresh cycle)
    id: str

    # Vehicle descriptor
    year: int = 0
    make: str = ""
    model: str = ""
    trim: str = ""
    title: str = ""

    # Economics (whole dollars)
    current_bid: int = 0
    market_value: int = 0
    discount_pct: int = 0

    # Auction state
    hours_left: float = DEFAULT_HOURS_LEFT
    bid_count: int = 0
    no_reserve: bool = False

    # Ranking
    deal_score: int = 0

    # Provenance
    url: str = ""
    image: str = ""
    location: str = DEFAULT_LOCATION
    mileage: int = 0
    scraped_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to the JSON shape served by the HTTP API."""
        return {
            "id": self.id,
            "year": self.year,
            "make": self.make,
            "model": self.model,
            "trim": self.trim,
            "title": self.title,
            "currentBid": self.current_bid,
            "marketValue": self.market_value,
            "discountPct": self.discount_pct,
            "dealScore": self.deal_score,
            "hoursLeft": self.hours_left,
            "bids": self.bid_count,
            "noReserve": self.no_reserve,
            "location": self.location,
            "url": self.url,
            "image": self.image,
            "mileage": self.mileage,
            "scrapedAt": self.scraped_at.isoformat() if self.scraped_at else None,
        }


@dataclass(frozen=True)
class CacheSnapshot:
    """
    Point-in-time view of the listing cache.

    The coordinator swaps in a new snapshot on every state change, so a
    reader holding one never sees a half-applied refresh.
    """
    listings: tuple[Listing, ...] = field(default_factory=tuple)
    last_refreshed_at: Optional[datetime] = None
    refreshing: bool = False
    last_error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.listings

    @property
    def state(self) -> RefreshState:
        if self.refreshing:
            return RefreshState.REFRESHING
        if self.last_error:
            return RefreshState.FAILED
        return RefreshState.IDLE

    def age_minutes(self, now: datetime) -> float:
        """Minutes since the last successful refresh (infinite if never)."""
        if self.last_refreshed_at is None:
            return float("inf")
        return (now - self.last_refreshed_at).total_seconds() / 60
