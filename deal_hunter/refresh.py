"""
Refresh coordination for Deal Hunter.

The RefreshCoordinator owns the in-memory listing cache and is the only code
path that changes it. Three kinds of trigger feed it:
- the scheduled interval job
- on-demand scans from the API
- queries that find the cache empty or stale

At most one refresh runs at a time; triggers that arrive while one is in
flight are dropped, not queued. A failed refresh keeps the previous listings
and records the error for the status endpoints.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .models import CacheSnapshot, Listing
from .normalization import ListingNormalizer
from .sources.base import BaseExtractor

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshCoordinator:
    """
    Single-flight refresher and owner of the listing cache.

    Readers call snapshot() and get an immutable CacheSnapshot; every state
    change swaps in a new snapshot, so readers never need the lock.

    Usage:
        coordinator = RefreshCoordinator(CarsAndBidsExtractor(), target_url=url)
        coordinator.trigger("startup")
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        normalizer: Optional[ListingNormalizer] = None,
        target_url: str = "https://carsandbids.com/auctions/",
        extract_timeout: float = 90.0,
        stale_after: timedelta = timedelta(minutes=20),
        clock: Clock = utc_now,
    ):
        self.extractor = extractor
        self.normalizer = normalizer or ListingNormalizer()
        self.target_url = target_url
        self.extract_timeout = extract_timeout
        self.stale_after = stale_after
        self.clock = clock

        self._snapshot = CacheSnapshot()
        self._changed = threading.Condition()

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def snapshot(self) -> CacheSnapshot:
        """Current cache state; safe to call from any thread."""
        return self._snapshot

    def is_stale(self, now: Optional[datetime] = None, snapshot: Optional[CacheSnapshot] = None) -> bool:
        """
        True if the cache is empty or older than the staleness threshold.

        Args:
            now: Reference time (defaults to the coordinator clock)
            snapshot: Snapshot to judge (defaults to the current one)
        """
        snap = snapshot if snapshot is not None else self._snapshot
        if snap.is_empty:
            return True
        now = now or self.clock()
        return snap.age_minutes(now) > self.stale_after.total_seconds() / 60

    def wait_for_refresh(self, timeout: float) -> bool:
        """
        Block until no refresh is in flight, or the timeout expires.

        Returns:
            True if the cache is idle on return, False on timeout
        """
        with self._changed:
            return self._changed.wait_for(lambda: not self._snapshot.refreshing, timeout=timeout)

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def trigger(self, reason: str = "on-demand") -> bool:
        """
        Start a refresh on a background thread.

        Returns:
            True if a refresh was started, False if one was already running

        Raises:
            RuntimeError: If the worker thread cannot be started; the slot is released first
        """
        if not self._begin(reason):
            return False

        thread = threading.Thread(
            target=self._run,
            args=(reason,),
            name=f"refresh-{reason}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as e:
            logger.error(f"Could not start refresh thread ({reason}): {e}")
            self._commit_failure(str(e) or e.__class__.__name__)
            raise
        return True

    def refresh(self, reason: str = "scheduled") -> bool:
        """
        Run a refresh on the calling thread.

        Returns:
            True if this call performed the refresh, False if one was already running
        """
        if not self._begin(reason):
            return False
        self._run(reason)
        return True

    # =========================================================================
    # REFRESH LIFECYCLE
    # =========================================================================

    def _begin(self, reason: str) -> bool:
        """Claim the single-flight slot and clear the previous error."""
        with self._changed:
            if self._snapshot.refreshing:
                logger.info(f"Refresh already in progress, skipping {reason} trigger")
                return False
            self._snapshot = replace(self._snapshot, refreshing=True, last_error=None)

        logger.info(f"Starting refresh ({reason})")
        return True

    def _run(self, reason: str) -> None:
        started = self.clock()
        try:
            records = self.extractor.extract(self.target_url, self.extract_timeout)
            listings = self.normalizer.normalize_batch(records, self.clock())
        except Exception as e:
            logger.error(f"Refresh ({reason}) failed: {e}")
            self._commit_failure(str(e) or e.__class__.__name__)
            return

        self._commit_success(listings)
        duration = (self.clock() - started).total_seconds()
        logger.info(f"Refresh ({reason}) complete in {duration:.1f}s: {len(listings)} listings cached")

    def _commit_success(self, listings: list[Listing]) -> None:
        with self._changed:
            self._snapshot = CacheSnapshot(
                listings=tuple(listings),
                last_refreshed_at=self.clock(),
                refreshing=False,
                last_error=None,
            )
            self._changed.notify_all()

    def _commit_failure(self, error: str) -> None:
        with self._changed:
            self._snapshot = replace(self._snapshot, refreshing=False, last_error=error)
            self._changed.notify_all()
