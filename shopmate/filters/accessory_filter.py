# shopmate/filters/accessory_filter.py

"""Accessory detection and the price-sort fallback filter."""

import logging

from shopmate.models.product import Product

logger = logging.getLogger("shopmate.filters")


def contains_keyword(text: str, keywords: list[str]) -> bool:
    """Case-insensitive substring match against any keyword."""
    lowered = text.lower()
    return any(kw.lower() in lowered for kw in keywords)


class AccessoryFilter:
    """Keep cheap accessories from taking over a plain price sort.

    Only used when relevance scoring is unavailable: a query for a
    primary product (e.g. "wireless mouse") would otherwise surface a
    stack of cheap cables and cases at the top of the list.
    """

    def __init__(
        self, keywords: list[str], price_threshold: float,
    ) -> None:
        self.keywords = keywords
        self.price_threshold = price_threshold

    def is_accessory(self, title: str) -> bool:
        """True when the title mentions any accessory keyword."""
        return contains_keyword(title, self.keywords)

    def targets_accessory(self, query: str) -> bool:
        """True when the query itself is looking for an accessory."""
        return contains_keyword(query, self.keywords)

    def apply(
        self, query: str, products: list[Product],
    ) -> tuple[list[Product], int]:
        """Drop accessories priced below the threshold for primary queries.

        Returns the kept products (input order) and the removed count.
        """
        if self.targets_accessory(query):
            return products, 0

        kept = [
            p
            for p in products
            if not (
                self.is_accessory(p.title)
                and p.price < self.price_threshold
            )
        ]
        removed = len(products) - len(kept)
        if removed:
            logger.info(
                "Accessory filter removed %d low-cost accessories "
                "for query '%s'",
                removed,
                query,
            )
        return kept, removed
