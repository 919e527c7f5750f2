# shopmate/filters/product_validator.py

"""Product validation: drop structurally invalid listings before merging."""

import logging

from shopmate.models.product import Product

logger = logging.getLogger("shopmate.filters")


class ProductValidator:
    """Validate products and drop those with missing essential fields."""

    @staticmethod
    def is_valid(product: Product) -> bool:
        """A product needs a non-blank title, a positive price and a link."""
        return (
            bool(product.title and product.title.strip())
            and product.price > 0
            and bool(product.link)
        )

    @staticmethod
    def validate(
        products: list[Product],
    ) -> tuple[list[Product], int]:
        """Drop products with blank titles, non-positive prices or no link.

        Returns the valid products and the count of dropped items.
        """
        valid: list[Product] = []
        dropped = 0

        for product in products:
            if not product.title or not product.title.strip():
                logger.debug(
                    "Dropped product with empty title "
                    "(store=%s, link=%s)",
                    product.store,
                    product.link,
                )
                dropped += 1
                continue
            if product.price <= 0:
                logger.debug(
                    "Dropped product with zero/negative "
                    "price (title=%s, store=%s)",
                    product.title,
                    product.store,
                )
                dropped += 1
                continue
            if not product.link:
                logger.debug(
                    "Dropped product without link (title=%s, store=%s)",
                    product.title,
                    product.store,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid products",
                dropped,
            )

        return valid, dropped
