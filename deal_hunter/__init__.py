"""
Deal Hunter - Vehicle Auction Deal Finder

Pulls live auctions from Cars & Bids, estimates what each car is worth,
scores how good a deal it is, and serves the ranked list over a small JSON
API with a daily email digest.

Modules:
- config: Configuration and environment variables
- models: Canonical data models (dataclasses)
- titles: Split auction titles into year/make/model/trim
- valuation: Market value estimate and deal score
- normalization: Map raw records to the canonical schema
- sources: Extractors for the auction site
- refresh: Single-flight cache refresh coordinator
- query: Filtering and ranking of cached listings
- digest: Daily digest email
- scheduler: APScheduler setup for periodic jobs
- server: Flask API
- pipeline: Wiring and CLI entry point
"""

__version__ = "0.1.0"

# Convenient imports
from .models import Listing, CacheSnapshot, RefreshState, VehicleTitle
from .titles import parse_title
from .valuation import estimate_market_value, calc_discount_pct, calc_deal_score
from .normalization import ListingNormalizer, normalize_records, parse_time_left
from .sources import BaseExtractor, ExtractionError
from .refresh import RefreshCoordinator
from .query import ListingQuery, QueryEngine, QueryError, QueryResult, rank_listings
from .digest import DigestSender, DigestError

__all__ = [
    # Models
    "Listing",
    "CacheSnapshot",
    "RefreshState",
    "VehicleTitle",
    # Enrichment
    "parse_title",
    "estimate_market_value",
    "calc_discount_pct",
    "calc_deal_score",
    "ListingNormalizer",
    "normalize_records",
    "parse_time_left",
    # Extraction
    "BaseExtractor",
    "ExtractionError",
    # Cache and queries
    "RefreshCoordinator",
    "ListingQuery",
    "QueryEngine",
    "QueryError",
    "QueryResult",
    "rank_listings",
    # Digest
    "DigestSender",
    "DigestError",
]
