# shopmate/scrapers/flipkart_scraper.py

"""Scraper for flipkart.com."""

from urllib.parse import quote_plus

from bs4 import Tag

from shopmate.config.settings import Settings
from shopmate.models.product import Product
from shopmate.scrapers.base_scraper import BaseScraper


class FlipkartScraper(BaseScraper):
    """Scraper for flipkart.com search result pages.

    Flipkart rotates its obfuscated class names regularly, so the
    selectors in ``selectors.json`` list several alternatives each.
    """

    BASE_URL = "https://www.flipkart.com"

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__("flipkart", settings)

    def _get_homepage(self) -> str:
        return f"{self.BASE_URL}/"

    def _parse_card(self, card: Tag) -> Product:
        """Parse a single product card into a Product."""
        url_el = card.select_one(self.selectors["url"])
        href = str(url_el.get("href", "")) if url_el else ""
        image_el = card.select_one(self.selectors.get("image", "img"))

        title = self._select_text(card, "title")
        if not title and url_el and url_el.get("title"):
            title = str(url_el["title"])

        price = self.extract_price(self._select_text(card, "price"))
        discount = float(
            self.extract_count(self._select_text(card, "discount"))
        )
        if not discount:
            discount = self.discount_percent(
                price,
                self.extract_price(self._select_text(card, "old_price")),
            )

        return Product(
            id=str(card.get("data-id", "") or ""),
            title=title,
            price=price,
            store="Flipkart",
            link=f"{self.BASE_URL}{href}" if href else "",
            rating=self.extract_rating(self._select_text(card, "rating")),
            reviews=self.extract_count(self._select_text(card, "reviews")),
            discount=discount,
            image=str(image_el.get("src", "")) if image_el else "",
            source="flipkart",
        )

    def fetch(self, query: str) -> list[Product]:
        """Search Flipkart for products matching the query."""
        self.start_budget()
        try:
            products: list[Product] = []
            for page in range(1, self.settings.MAX_PAGES + 1):
                url = (
                    f"{self.BASE_URL}/search?q={quote_plus(query)}"
                    f"&page={page}"
                )
                self.logger.info(
                    "[flipkart] Fetching page %d (%d so far)",
                    page,
                    len(products),
                )
                soup = self._get_page(url)
                if not soup:
                    break

                cards = soup.select(self.selectors["product_card"])
                if not cards:
                    break
                for card in cards:
                    products.append(self._parse_card(card))

            return products
        except Exception as e:
            self.logger.error(
                "[flipkart] Search failed: %s", e, exc_info=True
            )
            return []
