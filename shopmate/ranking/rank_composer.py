# shopmate/ranking/rank_composer.py

"""Composite ranking of scored candidates, with a price-sort fallback."""

import logging
from dataclasses import dataclass

from shopmate.config.settings import Settings
from shopmate.filters.accessory_filter import AccessoryFilter
from shopmate.models.product import Product, ScoredProduct
from shopmate.ranking.relevance_scorer import ScoringOk, ScoringResult

logger = logging.getLogger("shopmate.ranking")


@dataclass
class RankOutcome:
    """Final item order and how it was produced."""

    items: list[Product]
    ranked_by_ai: bool
    filtered_count: int = 0


def price_sorted(products: list[Product]) -> list[Product]:
    """Stable price-ascending sort."""
    return sorted(products, key=lambda p: p.price)


class RankComposer:
    """Combine value, relevance and penalty into one composite score.

    ``CRS = W_R * relevance + W_P * value - W_IR * penalty``, clamped
    at zero. With the default weights a single irrelevance penalty
    outweighs a perfect relevance score.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.accessory_filter = AccessoryFilter(
            settings.ACCESSORY_KEYWORDS,
            settings.ACCESSORY_PRICE_THRESHOLD,
        )

    def composite_score(
        self,
        relevance: float | None,
        value: float,
        penalty: float,
    ) -> float:
        rel = (
            self.settings.NEUTRAL_RELEVANCE
            if relevance is None
            else relevance
        )
        crs = (
            self.settings.WEIGHT_RELEVANCE * rel
            + self.settings.WEIGHT_VALUE * value
            - self.settings.WEIGHT_IRRELEVANCE * penalty
        )
        return max(0.0, crs)

    def rank(self, products: list[ScoredProduct]) -> list[ScoredProduct]:
        """Attach composite scores and sort descending (ties keep order)."""
        scored = [
            ScoredProduct.from_product(
                p,
                composite_score=self.composite_score(
                    p.relevance_score,
                    p.value_score,
                    p.irrelevance_penalty,
                ),
            )
            for p in products
        ]
        return sorted(
            scored,
            key=lambda p: p.composite_score or 0.0,
            reverse=True,
        )

    def fallback(
        self, query: str, products: list[Product],
    ) -> tuple[list[Product], int]:
        """Price order with cheap accessories removed for primary queries."""
        kept, removed = self.accessory_filter.apply(query, products)
        return price_sorted(kept), removed

    def compose(
        self,
        query: str,
        scoring: ScoringResult,
        remainder: list[Product],
    ) -> RankOutcome:
        """Order the scored slice followed by the unscored remainder.

        On scoring failure no composite ranking is applied: the slice
        and remainder are accessory-filtered and re-sorted by price.
        """
        rest = price_sorted(remainder)
        if isinstance(scoring, ScoringOk):
            ranked = self.rank(scoring.products)
            logger.info(
                "Applied composite ranking to %d products", len(ranked)
            )
            return RankOutcome(
                items=[*ranked, *rest], ranked_by_ai=True
            )

        logger.warning(
            "Relevance scoring unavailable (%s), using price fallback",
            scoring.reason,
        )
        items, removed = self.fallback(
            query, [*scoring.products, *rest]
        )
        return RankOutcome(
            items=items, ranked_by_ai=False, filtered_count=removed
        )
