"""
Cars & Bids extractor.

Cars & Bids is a JavaScript SPA that loads its auction list from an internal
JSON API. The extractor drives a headless Chromium with Playwright, captures
that API response as it goes by, and falls back to scraping the rendered
auction cards when no API response is seen.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeout

from .base import BaseExtractor, ExtractionError

logger = logging.getLogger(__name__)

API_URL_MARKERS = ("/v2/autos/auctions", "/autos/auctions")

# Keys that have held the auction array across site revisions
PAYLOAD_LIST_KEYS = ("auctions", "results", "data", "items")

CARD_SELECTORS = [
    "li.auction-item",
    "[class*='auction-item']",
    "[class*='auction-card']",
]

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-gpu",
    "--single-process",
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"


def unwrap_auction_payload(payload) -> list[dict]:
    """
    Pull the list of auction dicts out of an intercepted API response.

    Handles a bare list as well as {"auctions": [...]}, {"results": [...]}
    and {"data": [...]} / {"data": {"auctions": [...]}} envelopes.
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]

    if isinstance(payload, dict):
        for name in PAYLOAD_LIST_KEYS:
            value = payload.get(name)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
            if isinstance(value, dict):
                nested = unwrap_auction_payload(value)
                if nested:
                    return nested

    return []


def _text(node, *selectors: str) -> str:
    for selector in selectors:
        found = node.select_one(selector)
        if found:
            text = found.get_text(" ", strip=True)
            if text:
                return text
    return ""


def parse_auction_cards(html: str, base_url: str = "https://carsandbids.com/") -> list[dict]:
    """
    Extract raw records from the rendered auction list page.

    Args:
        html: Page HTML
        base_url: Used to absolutize relative links

    Returns:
        List of raw record dictionaries (title, bid, time_left, ...)
    """
    soup = BeautifulSoup(html, "html.parser")

    cards = []
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            logger.debug(f"Found {len(cards)} auction cards with selector: {selector}")
            break

    records = []
    seen_urls = set()

    for card in cards:
        link = card.select_one("a[href*='/auctions/']")
        href = link.get("href") if link else None
        if not href:
            continue

        url = urljoin(base_url, href)
        if url in seen_urls:
            continue
        seen_urls.add(url)

        title = _text(card, ".auction-title", "[class*='title']") or (link.get_text(" ", strip=True) if link else "")
        if not title:
            continue

        image = card.select_one("img")
        card_text = card.get_text(" ", strip=True).lower()

        records.append({
            "title": title,
            "subtitle": _text(card, ".auction-subtitle", "[class*='subtitle']"),
            "bid": _text(card, ".bid-value", "[class*='bid-value']", "[class*='bid']"),
            "time_left": _text(card, ".time-left .value", ".time-left", "[class*='time']"),
            "location": _text(card, ".auction-loc", "[class*='location']"),
            "image": (image.get("src") or image.get("data-src") or "") if image else "",
            "url": url,
            "no_reserve": "no reserve" in card_text,
        })

    return records


class CarsAndBidsExtractor(BaseExtractor):
    """
    Extractor for carsandbids.com using Playwright.

    Strategy order:
    1. Capture the auctions API response fired while the list page loads
    2. Reload with the ending-soon sort to provoke another API call
    3. Parse the rendered auction cards
    """

    source = "carsandbids"

    ENDING_SOON_QUERY = "?sort=ending-soon"

    def __init__(self, headless: bool = True, settle_ms: int = 5000):
        self.headless = headless
        self.settle_ms = settle_ms

    def fetch_records(self, url: str, deadline: float) -> list[dict]:
        captured: dict = {}

        def on_response(response):
            if not any(marker in response.url for marker in API_URL_MARKERS):
                return
            try:
                logger.info(f"Intercepted API call: {response.url}")
                captured["payload"] = response.json()
            except Exception as e:
                logger.warning(f"Failed to parse intercepted response: {e}")

        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            try:
                context = browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1280, "height": 900},
                    locale="en-US",
                )
                context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
                page = context.new_page()
                page.on("response", on_response)

                html = self._load(page, url, deadline)

                if "payload" not in captured and self.remaining(deadline) > 0:
                    logger.info("No auction API data intercepted, trying the ending-soon view")
                    html = self._load(page, url.rstrip("/") + "/" + self.ENDING_SOON_QUERY, deadline) or html
            finally:
                browser.close()

        if "payload" in captured:
            records = unwrap_auction_payload(captured["payload"])
            logger.info(f"Found {len(records)} auctions in API response")
            if records:
                return records

        if html:
            records = parse_auction_cards(html, url)
            logger.info(f"Parsed {len(records)} auction cards from page")
            if records:
                return records

        raise ExtractionError(
            "Could not intercept Cars & Bids API response. The site may have changed its API structure."
        )

    def _load(self, page, url: str, deadline: float) -> Optional[str]:
        """Navigate and let the API calls settle; returns page HTML."""
        budget_ms = int(self.remaining(deadline) * 1000)
        if budget_ms <= 0:
            raise ExtractionError(f"Extraction deadline passed before loading {url}")

        try:
            page.goto(url, wait_until="networkidle", timeout=budget_ms)
        except PlaywrightTimeout:
            logger.warning(f"Timed out waiting for network idle on {url}")
            return page.content()

        logger.info(f"Page title: {page.title()}")
        page.wait_for_timeout(min(self.settle_ms, int(self.remaining(deadline) * 1000)))
        return page.content()
