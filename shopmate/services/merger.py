# shopmate/services/merger.py

"""Merge source batches into one validated, deduplicated product list."""

import dataclasses
import logging
from dataclasses import dataclass, field

from shopmate.config.settings import Settings
from shopmate.filters.deduplicator import ProductDeduplicator
from shopmate.filters.product_validator import ProductValidator
from shopmate.models.product import Product
from shopmate.services.fan_out import SourceBatch

logger = logging.getLogger("shopmate.merger")


@dataclass
class MergeResult:
    """Merged products plus the tallies of what was dropped."""

    products: list[Product] = field(
        default_factory=lambda: list[Product]()
    )
    cross_source_count: int = 0
    invalid_count: int = 0
    deduplicated_count: int = 0
    direct_links: int = 0
    redirect_links: int = 0


class ProductMerger:
    """Concatenate batches by priority, filter, dedup and assign ids.

    Direct-site batches come first; aggregator batches follow with any
    listing for a store that was already scraped directly removed.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @staticmethod
    def _drop_direct_stores(
        batch: SourceBatch, direct_ids: list[str],
    ) -> tuple[list[Product], int]:
        kept = [
            p
            for p in batch.products
            if not any(ds in p.store.lower() for ds in direct_ids)
        ]
        return kept, len(batch.products) - len(kept)

    @staticmethod
    def assign_ids(products: list[Product]) -> list[Product]:
        """Give every product a run-unique id, defaulting to its position."""
        taken = {p.id for p in products if p.id}
        seen: set[str] = set()
        result: list[Product] = []
        for idx, product in enumerate(products):
            if product.id and product.id not in seen:
                seen.add(product.id)
                result.append(product)
                continue
            synthetic = str(idx)
            suffix = 1
            while synthetic in taken or synthetic in seen:
                synthetic = f"{idx}-{suffix}"
                suffix += 1
            seen.add(synthetic)
            result.append(dataclasses.replace(product, id=synthetic))
        return result

    def merge(self, batches: list[SourceBatch]) -> MergeResult:
        result = MergeResult()
        direct = [b for b in batches if b.kind == "direct"]
        others = [b for b in batches if b.kind != "direct"]
        direct_ids = [b.source_id.lower() for b in direct]

        combined: list[Product] = []
        for batch in direct:
            combined.extend(batch.products)
        for batch in others:
            kept, removed = self._drop_direct_stores(batch, direct_ids)
            if removed:
                logger.info(
                    "Filtered out %d %s items already scraped directly",
                    removed,
                    batch.label,
                )
            result.cross_source_count += removed
            combined.extend(kept)

        valid, result.invalid_count = ProductValidator.validate(combined)
        unique, result.deduplicated_count = (
            ProductDeduplicator.deduplicate(valid)
        )
        result.products = self.assign_ids(unique)

        redirect_domain = self.settings.REDIRECT_DOMAIN
        result.redirect_links = sum(
            1
            for p in result.products
            if p.is_redirect_link(redirect_domain)
        )
        result.direct_links = (
            len(result.products) - result.redirect_links
        )
        logger.info(
            "Merged %d products (%d invalid, %d duplicates, "
            "%d direct links, %d redirects)",
            len(result.products),
            result.invalid_count,
            result.deduplicated_count,
            result.direct_links,
            result.redirect_links,
        )
        return result
