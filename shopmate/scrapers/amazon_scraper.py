# shopmate/scrapers/amazon_scraper.py

"""Scraper for amazon.in."""

from urllib.parse import quote_plus

from bs4 import Tag

from shopmate.config.settings import Settings
from shopmate.models.product import Product
from shopmate.scrapers.base_scraper import BaseScraper


class AmazonScraper(BaseScraper):
    """Scraper for amazon.in search result pages."""

    BASE_URL = "https://www.amazon.in"

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__("amazon", settings)

    def _get_homepage(self) -> str:
        """Return the Amazon.in homepage URL."""
        return f"{self.BASE_URL}/"

    def _parse_card(self, card: Tag) -> Product:
        """Parse a single product card into a Product."""
        url_el = card.select_one(self.selectors["url"])
        href = str(url_el.get("href", "")) if url_el else ""
        image_el = card.select_one(self.selectors.get("image", "img"))

        price = self.extract_price(self._select_text(card, "price"))
        old_price = self.extract_price(
            self._select_text(card, "old_price")
        )
        return Product(
            id=str(card.get("data-asin", "") or ""),
            title=self._select_text(card, "title"),
            price=price,
            store="Amazon",
            link=(
                href
                if href.startswith("http")
                else f"{self.BASE_URL}{href}" if href else ""
            ),
            rating=self.extract_rating(self._select_text(card, "rating")),
            reviews=self.extract_count(self._select_text(card, "reviews")),
            discount=self.discount_percent(price, old_price),
            image=str(image_el.get("src", "")) if image_el else "",
            source="amazon",
        )

    def fetch(self, query: str) -> list[Product]:
        """Search Amazon.in for products matching the query."""
        self.start_budget()
        try:
            products: list[Product] = []
            url = f"{self.BASE_URL}/s?k={quote_plus(query)}"

            for page in range(1, self.settings.MAX_PAGES + 1):
                self.logger.info(
                    "[amazon] Fetching page %d (%d so far)",
                    page,
                    len(products),
                )
                soup = self._get_page(url)
                if not soup:
                    break

                for card in soup.select(self.selectors["product_card"]):
                    products.append(self._parse_card(card))

                next_btn = soup.select_one("a.s-pagination-next")
                if next_btn and next_btn.get("href"):
                    url = f"{self.BASE_URL}{next_btn['href']}"
                else:
                    break

            return products
        except Exception as e:
            self.logger.error(
                "[amazon] Search failed: %s", e, exc_info=True
            )
            return []
