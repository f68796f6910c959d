"""
Normalization module for Deal Hunter.

Maps raw records from any extraction strategy (intercepted API JSON, scraped
auction cards) into the canonical Listing schema. Field names differ between
strategies and site revisions, so every field is read through an ordered list
of rules: the first rule that yields a value wins, otherwise a named default
applies.
"""

import re
import math
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional
from urllib.parse import urljoin

from .models import Listing, DEFAULT_HOURS_LEFT, DEFAULT_LOCATION
from .titles import parse_title
from .valuation import estimate_market_value, calc_discount_pct, calc_deal_score

logger = logging.getLogger(__name__)

AUCTIONS_BASE_URL = "https://carsandbids.com/auctions/"

# Hours assumed for an auction flagged as "ending soon" without a countdown
IMMINENT_HOURS = 0.5

Rule = Callable[[Mapping], Any]


# =============================================================================
# VALUE COERCION
# =============================================================================

def _parse_number(value) -> Optional[float]:
    """Parse 12500, 12500.0 or "$12,500" into a float; None if not numeric."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    if isinstance(value, str):
        match = re.search(r"-?\d[\d,]*(?:\.\d+)?", value)
        if not match:
            return None
        try:
            number = float(match.group(0).replace(",", ""))
            return number if math.isfinite(number) else None
        except ValueError:
            return None

    return None


def _to_count(value) -> int:
    number = _parse_number(value)
    if number is None:
        return 0
    return max(0, int(number))


def _parse_datetime(value) -> Optional[datetime]:
    """Parse an end timestamp: datetime, ISO-8601 string, or epoch seconds/ms."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return _parse_datetime(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# FIELD RULES
# =============================================================================

def key(name: str) -> Rule:
    """Rule yielding raw[name] when present and non-empty."""
    def rule(raw: Mapping):
        value = raw.get(name)
        if value is None or value == "" or value == [] or value == {}:
            return None
        return value
    return rule


def number_key(name: str) -> Rule:
    def rule(raw: Mapping):
        return _parse_number(raw.get(name))
    return rule


def first_item(name: str) -> Rule:
    """Rule yielding the first element of a list field."""
    def rule(raw: Mapping):
        value = raw.get(name)
        if isinstance(value, (list, tuple)) and value:
            return value[0] or None
        return None
    return rule


def first_of(raw: Mapping, rules: Iterable[Rule], default=None):
    """Apply rules in order and return the first non-None result."""
    for rule in rules:
        try:
            value = rule(raw)
        except (TypeError, ValueError, AttributeError, KeyError, IndexError):
            value = None
        if value is not None:
            return value
    return default


def _reserve_is_false(raw: Mapping):
    return True if raw.get("reserve") is False else None


MILES_TEXT_PATTERN = re.compile(r"([\d,]+)\s*(?:miles|mi)\b", re.I)


def _miles_in(name: str) -> Rule:
    """Rule pulling a mileage out of free text such as "~85,000 Miles, 6-Speed"."""
    def rule(raw: Mapping):
        match = MILES_TEXT_PATTERN.search(str(raw.get(name) or ""))
        return _parse_number(match.group(1)) if match else None
    return rule


def _truthy(name: str) -> Rule:
    def rule(raw: Mapping):
        value = raw.get(name)
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "y")
        return bool(value)
    return rule


TITLE_RULES: list[Rule] = [key("title"), key("name")]
YEAR_RULES: list[Rule] = [number_key("year")]
MAKE_RULES: list[Rule] = [key("make")]
MODEL_RULES: list[Rule] = [key("model")]
TRIM_RULES: list[Rule] = [key("trim"), key("series")]
BID_RULES: list[Rule] = [
    number_key("current_bid"),
    number_key("currentBid"),
    number_key("bid"),
    number_key("price"),
]
NO_RESERVE_RULES: list[Rule] = [_truthy("no_reserve"), _truthy("noReserve"), _reserve_is_false]
BID_COUNT_RULES: list[Rule] = [number_key("bid_count"), number_key("bidCount"), number_key("bids")]
LOCATION_RULES: list[Rule] = [key("location"), key("seller_location"), key("city")]
URL_RULES: list[Rule] = [key("url")]
SLUG_RULES: list[Rule] = [key("slug"), key("id")]
IMAGE_RULES: list[Rule] = [
    key("thumbnail"),
    key("image"),
    key("photo"),
    first_item("images"),
    first_item("photos"),
]
MILEAGE_RULES: list[Rule] = [number_key("mileage"), number_key("miles"), _miles_in("subtitle")]
END_TIME_RULES: list[Rule] = [
    lambda raw: _parse_datetime(raw.get("ends_at")),
    lambda raw: _parse_datetime(raw.get("endsAt")),
    lambda raw: _parse_datetime(raw.get("end_time")),
    lambda raw: _parse_datetime(raw.get("closing_at")),
]
TIME_LEFT_RULES: list[Rule] = [
    key("time_left"),
    key("timeLeft"),
    key("time_remaining"),
    key("countdown"),
]


# =============================================================================
# RELATIVE TIME PARSING
# =============================================================================

DAYS_PATTERN = re.compile(r"(\d+)\s*(?:days?|d)\b(?:\s*(\d+)\s*(?:hours?|hrs?|h)\b)?", re.I)
HOURS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b", re.I)
HOURS_MINUTES_PATTERN = re.compile(r"(\d+)\s*h(?:\s*(\d+)\s*(?:minutes?|mins?|m))?\b", re.I)
MINUTES_PATTERN = re.compile(r"(\d+)\s*(?:minutes?|mins?|m)\b", re.I)
CLOCK_PATTERN = re.compile(r"(\d{1,3}):(\d{2}):(\d{2})")
IMMINENT_PATTERN = re.compile(r"ending|soon", re.I)


def parse_time_left(text) -> float:
    """
    Convert a countdown string into hours.

    Patterns are tried in order: days, hours, "Hh Mm", minutes, HH:MM:SS.
    "Ending soon" without a number maps to half an hour; anything else
    unrecognised falls back to the 48 hour default.
    """
    if text is None:
        return DEFAULT_HOURS_LEFT
    text = str(text)

    match = DAYS_PATTERN.search(text)
    if match:
        return float(int(match.group(1)) * 24 + int(match.group(2) or 0))

    match = HOURS_PATTERN.search(text)
    if match:
        return float(match.group(1))

    match = HOURS_MINUTES_PATTERN.search(text)
    if match:
        return int(match.group(1)) + int(match.group(2) or 0) / 60.0

    match = MINUTES_PATTERN.search(text)
    if match:
        return int(match.group(1)) / 60

    match = CLOCK_PATTERN.search(text)
    if match:
        hours, minutes, seconds = (int(g) for g in match.groups())
        return hours + minutes / 60 + seconds / 3600

    if IMMINENT_PATTERN.search(text):
        return IMMINENT_HOURS

    return DEFAULT_HOURS_LEFT


# =============================================================================
# NORMALIZER CLASS
# =============================================================================

class ListingNormalizer:
    """
    Normalizes raw extracted records into canonical Listing objects.

    Usage:
        normalizer = ListingNormalizer()
        listings = normalizer.normalize_batch(records, now)
    """

    def __init__(self, base_url: str = AUCTIONS_BASE_URL, strict: bool = False, id_prefix: str = "cnb"):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.strict = strict
        self.id_prefix = id_prefix

    def normalize_batch(self, records: Iterable, now: Optional[datetime] = None) -> list[Listing]:
        """
        Normalize a batch of raw records.

        A bad record is logged and skipped; it never aborts the batch.

        Args:
            records: Raw record dictionaries from an extractor
            now: Timestamp stamped on every listing (defaults to current UTC time)

        Returns:
            List of normalized Listing objects
        """
        now = now or datetime.now(timezone.utc)
        records = list(records)
        normalized = []

        for index, raw in enumerate(records):
            if not isinstance(raw, Mapping):
                logger.warning(f"Skipping record {index}: expected a mapping, got {type(raw).__name__}")
                continue

            if self.strict and not self.is_usable(raw):
                logger.debug(f"Dropping record {index} without a usable bid")
                continue

            try:
                normalized.append(self.normalize(raw, index, now))
            except Exception as e:
                logger.warning(f"Failed to normalize record {index}: {e}")
                continue

        logger.info(f"Normalized {len(normalized)}/{len(records)} records")
        return normalized

    def is_usable(self, raw: Mapping) -> bool:
        """Strict-mode gate: the record must carry a positive bid."""
        bid = first_of(raw, BID_RULES)
        return bid is not None and bid > 0

    def normalize(self, raw: Mapping, index: int, now: datetime) -> Listing:
        """
        Normalize a single raw record into a Listing.

        Args:
            raw: Raw record from an extractor
            index: Position of the record within this refresh
            now: Normalization timestamp

        Returns:
            Listing with every field filled (defaults where the record is silent)
        """
        vehicle = self._vehicle(raw)
        year, make, model, trim, title = vehicle

        current_bid = max(0, int(round(first_of(raw, BID_RULES, 0.0))))
        bid_count = _to_count(first_of(raw, BID_COUNT_RULES, 0))
        no_reserve = bool(first_of(raw, NO_RESERVE_RULES, False))
        hours_left = self._hours_left(raw, now)

        market_value = estimate_market_value(year, make, model, current_bid)
        discount_pct = calc_discount_pct(market_value, current_bid)
        deal_score = calc_deal_score(discount_pct, hours_left, bid_count, no_reserve)

        return Listing(
            id=f"{self.id_prefix}-{index}-{int(now.timestamp() * 1000)}",
            year=year,
            make=make,
            model=model,
            trim=trim,
            title=title,
            current_bid=current_bid,
            market_value=market_value,
            discount_pct=discount_pct,
            hours_left=hours_left,
            bid_count=bid_count,
            no_reserve=no_reserve,
            deal_score=deal_score,
            url=self._url(raw),
            image=self._clean_text(first_of(raw, IMAGE_RULES, "")),
            location=self._location(raw),
            mileage=_to_count(first_of(raw, MILEAGE_RULES, 0)),
            scraped_at=now,
        )

    def _vehicle(self, raw: Mapping) -> tuple[int, str, str, str, str]:
        """Resolve year/make/model/trim/title, parsing the title for gaps."""
        explicit_year = max(0, int(first_of(raw, YEAR_RULES, 0) or 0))
        explicit_make = self._clean_text(first_of(raw, MAKE_RULES, ""))
        explicit_model = self._clean_text(first_of(raw, MODEL_RULES, ""))
        explicit_trim = self._clean_text(first_of(raw, TRIM_RULES, ""))

        title = self._clean_text(first_of(raw, TITLE_RULES, ""))
        if not title:
            title = " ".join(
                str(part) for part in (explicit_year, explicit_make, explicit_model) if part
            )

        if explicit_year and explicit_make and explicit_model:
            return explicit_year, explicit_make, explicit_model, explicit_trim, title

        parsed = parse_title(title)
        year = explicit_year or parsed.year
        make = explicit_make or parsed.make
        model = explicit_model or parsed.model
        trim = explicit_trim or parsed.trim
        return year, make, model, trim, title

    def _hours_left(self, raw: Mapping, now: datetime) -> float:
        ends_at = first_of(raw, END_TIME_RULES)
        if ends_at is not None:
            if now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            return max(0.0, (ends_at - now).total_seconds() / 3600)

        text = first_of(raw, TIME_LEFT_RULES)
        if text is not None:
            if isinstance(text, (int, float)) and not isinstance(text, bool):
                # Bare numbers are treated as seconds remaining
                return max(0.0, text / 3600)
            return max(0.0, parse_time_left(text))

        return DEFAULT_HOURS_LEFT

    def _url(self, raw: Mapping) -> str:
        url = first_of(raw, URL_RULES)
        if isinstance(url, str) and url.strip():
            return urljoin(self.base_url, url.strip())

        slug = first_of(raw, SLUG_RULES)
        if slug is not None:
            return urljoin(self.base_url, str(slug).strip("/"))

        return self.base_url

    def _location(self, raw: Mapping) -> str:
        location = first_of(raw, LOCATION_RULES)
        if isinstance(location, Mapping):
            parts = [location.get("city"), location.get("state")]
            location = ", ".join(str(p) for p in parts if p)
        return self._clean_text(location) or DEFAULT_LOCATION

    def _clean_text(self, text) -> str:
        """Clean and normalize text."""
        if text is None or isinstance(text, (Mapping, list, tuple)):
            return ""
        if isinstance(text, float) and text.is_integer():
            text = int(text)
        text = str(text)

        # Remove excessive whitespace
        text = re.sub(r"\s+", " ", text)
        # Remove HTML entities
        text = re.sub(r"&[a-z]+;", " ", text)
        return text.strip()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def normalize_records(records: Iterable, now: Optional[datetime] = None, strict: bool = False) -> list[Listing]:
    """
    Convenience function to normalize records.

    Args:
        records: Raw record dictionaries
        now: Normalization timestamp
        strict: Drop records without a usable bid

    Returns:
        List of normalized Listing objects
    """
    normalizer = ListingNormalizer(strict=strict)
    return normalizer.normalize_batch(records, now)
