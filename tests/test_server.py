"""Tests for the HTTP API."""

import threading

import pytest

from deal_hunter.pipeline import build_services
from deal_hunter.server import create_app
from deal_hunter.sources.base import ExtractionError

from conftest import FakeExtractor

RECORDS = [
    {"title": "2003 BMW M5 (E39)", "current_bid": 20000, "time_left": "2 hours", "no_reserve": True, "slug": "a1"},
    {"title": "2015 Honda Civic Si", "current_bid": 9000, "time_left": "10 hours", "bid_count": 30, "slug": "a2"},
    {"title": "1995 Toyota Supra Turbo", "current_bid": 45000, "time_left": "3 days", "slug": "a3"},
]


@pytest.fixture
def extractor():
    return FakeExtractor(RECORDS)


@pytest.fixture
def services(extractor, app_config, email_config):
    return build_services(extractor=extractor, app_config=app_config, email_config=email_config)


@pytest.fixture
def client(services):
    app = create_app(services)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client, services):
    services.coordinator.refresh()

    body = client.get("/health").get_json()

    assert body["status"] == "ok"
    assert body["scraping"] is False
    assert body["count"] == 3
    assert body["lastScraped"] is not None


def test_cross_origin_requests_allowed(client):
    response = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert response.headers.get("Access-Control-Allow-Origin") == "*"


def test_listings_filtered_and_ranked(client, services):
    services.coordinator.refresh()

    response = client.get("/api/listings")

    assert response.status_code == 200
    body = response.get_json()
    assert body["total"] == 2
    assert [listing["make"] for listing in body["listings"]] == ["BMW", "Honda"]
    assert body["listings"][0]["dealScore"] >= body["listings"][1]["dealScore"]
    assert body["listings"][0]["url"] == "https://carsandbids.com/auctions/a1"
    assert body["scraping"] is False


def test_listings_query_parameters(client, services):
    services.coordinator.refresh()

    body = client.get("/api/listings?closeHours=100&noReserveOnly=true").get_json()
    assert [listing["model"] for listing in body["listings"]] == ["M5"]

    body = client.get("/api/listings?closeHours=100&maxBudget=10000").get_json()
    assert [listing["model"] for listing in body["listings"]] == ["Civic"]


def test_listing_json_shape(client, services):
    services.coordinator.refresh()

    listing = client.get("/api/listings?closeHours=100").get_json()["listings"][0]

    for key in ("id", "year", "make", "model", "trim", "currentBid", "marketValue", "discountPct",
                "dealScore", "hoursLeft", "bids", "noReserve", "location", "url", "image", "scrapedAt"):
        assert key in listing


def test_listings_empty_cache_refreshes_on_request(client, extractor):
    body = client.get("/api/listings").get_json()

    assert extractor.calls == 1
    assert body["total"] == 2


def test_listings_error_when_empty_and_failed(client, extractor):
    extractor.error = ExtractionError("Could not intercept Cars & Bids API response.")

    response = client.get("/api/listings")

    assert response.status_code == 500
    assert response.get_json() == {"error": "Could not intercept Cars & Bids API response."}


@pytest.mark.parametrize("path", ["/api/scrape", "/api/scan"])
def test_scan_triggers_refresh(client, services, path):
    response = client.post(path)

    assert response.get_json()["isScanning"] is True
    assert services.coordinator.wait_for_refresh(5)
    assert len(services.coordinator.snapshot().listings) == 3


def test_scan_while_running(client, services, extractor):
    gate = threading.Event()
    extractor.gate = gate

    first = client.post("/api/scan").get_json()
    assert extractor.started.wait(2)
    second = client.post("/api/scrape").get_json()

    assert first == {"isScanning": True}
    assert second["isScanning"] is True
    assert "already" in second["message"]

    gate.set()
    services.coordinator.wait_for_refresh(5)
    assert extractor.calls == 1


def test_status(client, services, extractor):
    assert client.get("/api/status").get_json() == {
        "isScanning": False,
        "cachedCount": 0,
        "lastScraped": None,
        "error": None,
    }

    extractor.error = ExtractionError("timeout")
    services.coordinator.refresh()
    body = client.get("/api/status").get_json()
    assert body["error"] == "timeout"
    assert body["cachedCount"] == 0


def test_unknown_route_is_json_404(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert "error" in response.get_json()
