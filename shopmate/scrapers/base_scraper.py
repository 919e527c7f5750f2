# shopmate/scrapers/base_scraper.py

"""Abstract base class for direct storefront scrapers."""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from shopmate.config.settings import Settings
from shopmate.models.product import Product

# Statuses that mean "slow down" rather than "gone"
_THROTTLE_STATUSES = frozenset({403, 429, 529})


class BaseScraper(ABC):
    """Abstract base class for direct storefront scrapers.

    Subclasses implement :meth:`fetch`, which must never raise: any
    failure is logged and resolves to an empty list.

    Every fetch runs inside a time budget of ``SOURCE_TIMEOUT``
    seconds. Retries, back-off sleeps and the cloudscraper fallback
    all stop once the budget is spent, so a scraper abandoned by the
    fan-out deadline finishes shortly after it instead of holding its
    worker thread through every retry.
    """

    _CF_CHALLENGE_MARKERS: tuple[str, ...] = (
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    )

    def __init__(
        self, source_name: str, settings: Settings | None = None,
    ) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"shopmate.scrapers.{source_name}"
        )
        self.settings = settings or Settings()
        self.selectors: dict[str, str] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY
        self._deadline: float = 0.0
        self.start_budget()

    def _load_selectors(self) -> dict[str, str]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, str] = all_selectors.get(self.source_name, {})
        return result

    # --- Time budget ---

    def start_budget(self) -> None:
        """Restart the per-fetch clock from ``SOURCE_TIMEOUT``."""
        self._deadline = (
            time.monotonic() + float(self.settings.SOURCE_TIMEOUT)
        )

    def _time_left(self) -> float:
        return max(0.0, self._deadline - time.monotonic())

    def _request_timeout(self) -> float:
        return min(float(self.settings.REQUEST_TIMEOUT), self._time_left())

    def _pause(self, seconds: float) -> None:
        """Sleep for *seconds*, never past the end of the budget."""
        seconds = min(seconds, self._time_left())
        if seconds > 0:
            time.sleep(seconds)

    def _escalate_delay(self) -> None:
        """Double the inter-request delay, capped at MAX_DELAY_MULTIPLIER."""
        ceiling = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, ceiling)
        self.logger.warning(
            "[%s] Throttled, next delay %.1fs",
            self.source_name,
            self._current_delay,
        )

    # --- Fetching ---

    def _validate_response(self, resp: curl_requests.Response) -> bool:
        """False for Cloudflare challenges and CAPTCHA interstitials."""
        text = resp.text
        if text.lstrip().startswith(("{", "[")):
            return True
        lower = text.lower()

        marker = next(
            (m for m in self._CF_CHALLENGE_MARKERS if m in lower), None
        )
        if marker:
            self.logger.warning(
                "[%s] Challenge page served (marker '%s')",
                self.source_name,
                marker,
            )
            return False

        # Real result pages are large and may mention captcha in scripts
        if "<body" in lower and len(text) > 5000:
            return True
        keyword = next(
            (k for k in self.settings.CAPTCHA_KEYWORDS if k in lower), None
        )
        if keyword:
            self.logger.warning(
                "[%s] CAPTCHA page served ('%s')",
                self.source_name,
                keyword,
            )
            return False
        return True

    def _fetch_get(
        self,
        url: str,
        headers: dict[str, str],
    ) -> curl_requests.Response | None:
        """GET *url* with up to MAX_RETRIES attempts inside the budget."""
        for attempt in range(1, self.settings.MAX_RETRIES + 1):
            timeout = self._request_timeout()
            if timeout <= 0:
                self.logger.warning(
                    "[%s] Time budget spent before attempt %d",
                    self.source_name,
                    attempt,
                )
                return None
            try:
                resp = self.session.get(url, headers=headers, timeout=timeout)
            except Exception as exc:
                self.logger.warning(
                    "[%s] Attempt %d failed: %s",
                    self.source_name,
                    attempt,
                    exc,
                    exc_info=True,
                )
                self._pause(self._current_delay * attempt)
                continue

            if resp.status_code == 200:
                if self._validate_response(resp):
                    self._current_delay = self.settings.REQUEST_DELAY
                    return resp
                self._escalate_delay()
                self._pause(self._current_delay)
                continue

            self.logger.warning(
                "[%s] HTTP %d on attempt %d",
                self.source_name,
                resp.status_code,
                attempt,
            )
            if resp.status_code in _THROTTLE_STATUSES:
                self._escalate_delay()
                self._pause(self._current_delay)
        return None

    def _fallback_get(
        self, url: str, headers: dict[str, str],
    ) -> BeautifulSoup | None:
        """One cloudscraper attempt for pages curl_cffi could not pass."""
        timeout = self._request_timeout()
        if timeout <= 0:
            self.logger.info(
                "[%s] No time left for the cloudscraper fallback",
                self.source_name,
            )
            return None
        self.logger.info(
            "[%s] Retrying with cloudscraper", self.source_name
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(url, headers=headers, timeout=timeout)
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper failed: %s",
                self.source_name,
                exc,
                exc_info=True,
            )
            return None
        if resp.status_code != 200:
            self.logger.warning(
                "[%s] cloudscraper got HTTP %d",
                self.source_name,
                resp.status_code,
            )
            return None
        return BeautifulSoup(str(resp.text), "lxml")

    def _get_page(self, url: str) -> BeautifulSoup | None:
        """Fetch and parse *url*, or None when every route failed."""
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self._get_homepage(),
        }
        self._pause(self._current_delay)
        resp = self._fetch_get(url, headers)
        if resp is not None:
            return BeautifulSoup(resp.text, "lxml")
        return self._fallback_get(url, headers)

    # --- Parsing helpers ---

    def _select_text(self, card: Tag, key: str) -> str:
        """Text of the first element matching selector *key*, or ''."""
        selector = self.selectors.get(key, "")
        if not selector:
            return ""
        el = card.select_one(selector)
        return el.get_text(strip=True) if el else ""

    @staticmethod
    def extract_price(text: str | None) -> float:
        """Extract a numeric price from a string like '₹1,299.00'."""
        if not text:
            return 0.0
        match = re.search(r"\d+(?:\.\d+)?", text.replace(",", ""))
        return float(match.group()) if match else 0.0

    @staticmethod
    def extract_rating(text: str | None) -> float:
        """Extract a rating from text like '4.3 out of 5 stars'."""
        if not text:
            return 0.0
        match = re.search(r"\d+(?:\.\d+)?", text)
        rating = float(match.group()) if match else 0.0
        return rating if rating <= 5 else 0.0

    @staticmethod
    def extract_count(text: str | None) -> int:
        """Extract the first integer from text like '(12,345) Ratings'."""
        if not text:
            return 0
        match = re.search(r"\d[\d,]*", text)
        return int(match.group().replace(",", "")) if match else 0

    @staticmethod
    def discount_percent(price: float, old_price: float) -> float:
        """Percentage saved against the list price, 0 when unknown."""
        if old_price <= 0 or price <= 0 or price >= old_price:
            return 0.0
        return round((old_price - price) / old_price * 100)

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def fetch(self, query: str) -> list[Product]:
        """Search for products and return a list of Product objects."""
        ...
