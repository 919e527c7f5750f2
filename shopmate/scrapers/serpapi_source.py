# shopmate/scrapers/serpapi_source.py

"""Google Shopping results for all other stores, via SerpAPI."""

import json
import logging
from typing import Any

from curl_cffi import requests as curl_requests

from shopmate.config.settings import Settings
from shopmate.models.product import Product


class SerpApiSource:
    """Aggregator source backed by the SerpAPI Google Shopping engine.

    Listings carry a merchant ``link`` when Google exposes one and a
    Google ``product_link`` (redirect) otherwise.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.logger = logging.getLogger("shopmate.scrapers.serpapi")
        self.settings = settings or Settings()
        self.session = curl_requests.Session()

    def _params(self, query: str) -> dict[str, str]:
        return {
            "engine": "google_shopping",
            "q": query,
            "gl": self.settings.SERPAPI_COUNTRY,
            "hl": "en",
            "api_key": self.settings.SERPAPI_KEY,
        }

    @staticmethod
    def _number(value: Any) -> float:
        try:
            return float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    @classmethod
    def _parse_result(cls, item: dict[str, Any]) -> Product:
        """Parse a single ``shopping_results`` entry into a Product."""
        price = cls._number(item.get("extracted_price"))
        old_price = cls._number(item.get("extracted_old_price"))
        discount = 0.0
        if old_price > price > 0:
            discount = round((old_price - price) / old_price * 100)

        return Product(
            id=str(item.get("product_id", "") or ""),
            title=str(item.get("title", "") or ""),
            price=price,
            store=str(item.get("source", "") or ""),
            link=str(item.get("link") or item.get("product_link") or ""),
            rating=cls._number(item.get("rating")),
            reviews=int(cls._number(item.get("reviews"))),
            discount=discount,
            image=str(item.get("thumbnail", "") or ""),
            source="serpapi",
        )

    def fetch(self, query: str) -> list[Product]:
        """Query Google Shopping through SerpAPI."""
        if not self.settings.serpapi_configured:
            self.logger.warning(
                "[serpapi] SERPAPI_KEY not configured, skipping"
            )
            return []
        try:
            resp = self.session.get(
                self.settings.SERPAPI_URL,
                params=self._params(query),
                timeout=min(
                    self.settings.REQUEST_TIMEOUT,
                    self.settings.SOURCE_TIMEOUT,
                ),
            )
            if resp.status_code != 200:
                self.logger.warning(
                    "[serpapi] HTTP %d: %s",
                    resp.status_code,
                    resp.text[:200],
                )
                return []

            data: dict[str, Any] = json.loads(resp.text)
            if data.get("error"):
                self.logger.warning("[serpapi] API error: %s", data["error"])
                return []

            results: list[dict[str, Any]] = data.get(
                "shopping_results", []
            )
            products = [self._parse_result(r) for r in results]
            self.logger.info(
                "[serpapi] %d shopping results for '%s'",
                len(products),
                query,
            )
            return products
        except Exception as exc:
            self.logger.error(
                "[serpapi] Search failed: %s", exc, exc_info=True
            )
            return []
