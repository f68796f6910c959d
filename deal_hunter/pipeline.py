"""
Main Pipeline module for Deal Hunter.

Wires the pieces together:
1. Extract → Pull raw auction records from Cars & Bids
2. Normalize → Map to canonical listings with value and deal score
3. Cache → Commit through the refresh coordinator
4. Query → Serve filtered, ranked views over HTTP
5. Digest → Email the best deals once a day

This is the main entry point for running the service.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .config import AppConfig, EmailConfig, get_app_config, get_email_config
from .digest import DigestError, DigestSender
from .normalization import ListingNormalizer
from .query import ListingQuery, QueryEngine
from .refresh import RefreshCoordinator
from .sources.base import BaseExtractor

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The long-lived objects shared by the server, scheduler and CLI."""
    coordinator: RefreshCoordinator
    engine: QueryEngine
    digest_sender: DigestSender
    app_config: AppConfig
    email_config: EmailConfig


def build_services(
    extractor: Optional[BaseExtractor] = None,
    app_config: Optional[AppConfig] = None,
    email_config: Optional[EmailConfig] = None,
) -> Services:
    """
    Create the coordinator, query engine and digest sender.

    Args:
        extractor: Extraction strategy (defaults to the Playwright Cars & Bids extractor)
        app_config: Overrides the environment configuration
        email_config: Overrides the environment email configuration

    Returns:
        Services bundle
    """
    app_config = app_config or get_app_config()
    email_config = email_config or get_email_config()

    if extractor is None:
        from .sources.carsandbids import CarsAndBidsExtractor
        extractor = CarsAndBidsExtractor(headless=app_config.headless)

    coordinator = RefreshCoordinator(
        extractor=extractor,
        normalizer=ListingNormalizer(base_url=app_config.target_url, strict=app_config.strict_normalization),
        target_url=app_config.target_url,
        extract_timeout=app_config.extract_timeout_seconds,
        stale_after=timedelta(minutes=app_config.stale_after_minutes),
    )
    engine = QueryEngine(coordinator, empty_wait_timeout=app_config.empty_cache_wait_seconds)

    return Services(
        coordinator=coordinator,
        engine=engine,
        digest_sender=DigestSender(email_config),
        app_config=app_config,
        email_config=email_config,
    )


# =============================================================================
# JOBS
# =============================================================================

def run_refresh_job(services: Services) -> bool:
    """Scheduled refresh; a no-op while another refresh is in flight."""
    return services.coordinator.refresh("scheduled")


def run_digest_job(services: Services) -> dict:
    """
    Send the daily digest of the best deals closing within a day.

    Returns:
        Summary dict with counts and status
    """
    top_n = services.email_config.digest_top_n
    listings = services.engine.top(top_n, ListingQuery(close_hours=24))
    if not listings:
        listings = services.engine.top(top_n)

    try:
        sent = services.digest_sender.send_digest(listings)
    except DigestError as e:
        logger.error(f"Digest failed: {e}")
        return {"status": "error", "listings": len(listings), "error": str(e)}

    return {"status": "sent" if sent else "skipped", "listings": len(listings)}


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for Deal Hunter."""
    import argparse

    parser = argparse.ArgumentParser(description="Deal Hunter auction service")
    parser.add_argument(
        "--mode",
        choices=["serve", "once", "digest"],
        default="serve",
        help="Mode to run: serve (API + scheduler), once (single refresh), digest (refresh and email the digest)"
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Listings to print in once mode"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    services = build_services()

    if args.mode == "serve":
        from .server import serve
        serve(services)
    elif args.mode == "once":
        services.coordinator.refresh("cli")
        snap = services.coordinator.snapshot()
        if snap.last_error:
            raise SystemExit(f"Refresh failed: {snap.last_error}")
        for listing in services.engine.top(args.top):
            print(f"[{listing.deal_score:2d}] {listing.title} | ${listing.current_bid:,} "
                  f"(est. ${listing.market_value:,}, {listing.discount_pct}%) | "
                  f"{listing.hours_left:.1f}h | {listing.url}")
    elif args.mode == "digest":
        services.coordinator.refresh("cli")
        result = run_digest_job(services)
        print(f"Digest: {result}")


if __name__ == "__main__":
    main()
