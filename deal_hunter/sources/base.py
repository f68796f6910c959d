"""
Base extractor class for auction sources.

An extractor turns a target URL and a time budget into a list of raw record
dictionaries, or fails with ExtractionError. How the records are obtained
(API interception, DOM scraping, a canned payload in tests) is entirely up
to the subclass; the pipeline only sees this contract.

Subclasses implement:
- fetch_records(): Get raw records from the source within the deadline
"""

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """The source was unreachable, timed out, or returned no recognisable records."""


class BaseExtractor(ABC):
    """
    Abstract base class for listing extractors.

    Provides common functionality:
    - Deadline bookkeeping
    - Uniform error reporting (everything surfaces as ExtractionError)
    - Empty-result detection

    Subclasses must implement:
    - source: Short name used in logs
    - fetch_records(): Get raw records from the source
    """

    source: str = "unknown"  # Subclass must set this

    @abstractmethod
    def fetch_records(self, url: str, deadline: float) -> list[dict]:
        """
        Fetch raw records from the source.

        Args:
            url: Target page or endpoint
            deadline: time.monotonic() value by which extraction must finish

        Returns:
            List of raw record dictionaries (not yet normalized)
        """
        pass

    @staticmethod
    def remaining(deadline: float) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, deadline - time.monotonic())

    def extract(self, url: str, timeout: float) -> list[dict]:
        """
        Main entry point: fetch records within the time budget.

        Raises:
            ExtractionError: If fetching fails or yields no records
        """
        logger.info(f"Starting extraction from {self.source}: {url}")
        deadline = time.monotonic() + timeout

        try:
            records = self.fetch_records(url, deadline)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"{self.source} extraction failed: {e}") from e

        if not records:
            raise ExtractionError(f"{self.source} returned no auctions. Response structure may have changed.")

        logger.info(f"Extracted {len(records)} records from {self.source}")
        return list(records)
