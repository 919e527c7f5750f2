# shopmate/ranking/value_scorer.py

"""Local, deterministic price-value scoring (no I/O)."""

from shopmate.config.settings import Settings
from shopmate.filters.accessory_filter import contains_keyword
from shopmate.models.product import Product, ScoredProduct


class ValueScorer:
    """Score how good a deal a listing is from its price alone.

    Cheap items get a reference price of twice their price, expensive
    ones (above ``PREMIUM_PRICE_THRESHOLD``) only 15 % headroom, so
    budget listings carry proportionally more ranking headroom.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def is_accessory(self, title: str) -> bool:
        return contains_keyword(title, self.settings.ACCESSORY_KEYWORDS)

    def reference_price(self, price: float) -> float:
        if price > self.settings.PREMIUM_PRICE_THRESHOLD:
            return price * self.settings.PREMIUM_REFERENCE_MULTIPLIER
        return price * self.settings.BUDGET_REFERENCE_MULTIPLIER

    def value_score(
        self, price: float, reference_price: float | None = None,
    ) -> float:
        """Return ``clamp(1 - price / reference, 0, 1)``.

        A zero reference (free item) scores 1.0.
        """
        reference = (
            self.reference_price(price)
            if reference_price is None
            else reference_price
        )
        if reference <= 0:
            return 1.0
        return max(0.0, min(1.0, 1 - price / reference))

    def score(self, product: Product) -> ScoredProduct:
        """Attach ``value_score`` and ``is_accessory`` to a product."""
        return ScoredProduct.from_product(
            product,
            is_accessory=self.is_accessory(product.title),
            value_score=self.value_score(product.price),
        )
