"""Shared test fixtures."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from deal_hunter.config import AppConfig, EmailConfig
from deal_hunter.models import Listing
from deal_hunter.sources.base import BaseExtractor

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for the coordinator."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeExtractor(BaseExtractor):
    """Returns canned records; optionally blocks on a gate or raises."""

    source = "fake"

    def __init__(self, records=None, error=None, gate=None):
        self.records = list(records or [])
        self.error = error
        self.gate = gate
        self.calls = 0
        self.started = threading.Event()

    def fetch_records(self, url, deadline):
        self.calls += 1
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.records)


def make_listing(id="l1", deal_score=50, hours_left=5.0, discount_pct=20, current_bid=10000, no_reserve=False):
    return Listing(
        id=id,
        year=2003,
        make="BMW",
        model="M5",
        title="2003 BMW M5",
        current_bid=current_bid,
        market_value=17000,
        discount_pct=discount_pct,
        hours_left=hours_left,
        bid_count=3,
        no_reserve=no_reserve,
        deal_score=deal_score,
        scraped_at=T0,
    )


def make_email_config(**overrides) -> EmailConfig:
    values = dict(
        provider="smtp",
        smtp_host="smtp.test",
        smtp_port=587,
        smtp_user="",
        smtp_password="",
        sendgrid_api_key="",
        from_email="digest@test",
        from_name="Deal Hunter",
        digest_recipient="me@test",
        digest_hour=8,
        digest_top_n=5,
    )
    values.update(overrides)
    return EmailConfig(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(empty_cache_wait_seconds=5, extract_timeout_seconds=5)


@pytest.fixture
def email_config() -> EmailConfig:
    return make_email_config()
