# shopmate/filters/deduplicator.py

"""Product deduplication across multiple sources."""

import logging

from shopmate.models.product import Product

logger = logging.getLogger("shopmate.filters")


class ProductDeduplicator:
    """Remove duplicate products by a title + price fingerprint.

    Near-duplicate titles with different prices are kept on purpose:
    the price difference is what the buyer is comparing.
    """

    TITLE_KEY_LENGTH = 50

    @staticmethod
    def fingerprint(product: Product) -> tuple[str, float]:
        """Return the dedup key: truncated lowercased title and exact price."""
        title_key = product.title.lower()[
            : ProductDeduplicator.TITLE_KEY_LENGTH
        ].strip()
        return title_key, product.price

    @staticmethod
    def deduplicate(
        products: list[Product],
    ) -> tuple[list[Product], int]:
        """Keep the first product per fingerprint, preserving order.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not products:
            return [], 0

        seen: set[tuple[str, float]] = set()
        kept: list[Product] = []
        removed = 0

        for product in products:
            key = ProductDeduplicator.fingerprint(product)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(product)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate products",
                removed,
            )

        return kept, removed
