# shopmate/services/verdict_generator.py

"""Natural-language recommendation for the top-ranked products."""

import asyncio
import logging
from dataclasses import dataclass

from shopmate.config.settings import Settings
from shopmate.models.product import Product
from shopmate.providers.base import TextProvider

logger = logging.getLogger("shopmate.verdict")

SYSTEM_INSTRUCTION = (
    "You are ShopMate, a friendly AI shopping assistant. Provide a "
    "detailed and enthusiastic recommendation in a single substantial "
    "paragraph (8-10 sentences). Clearly highlight key features, "
    "superior value, and specific reasons why the recommended product "
    "is better than competing listings. Focus on value and savings."
)


def format_amount(amount: float) -> str:
    """Group thousands and drop trailing zero decimals: 1299.5 -> '1,299.5'."""
    return f"{amount:,.2f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class Verdict:
    """The summary text and whether the external model wrote it."""

    text: str
    generated_by_ai: bool


class VerdictGenerator:
    """Write the verdict with a text provider, or from a local template.

    The template path is deterministic and always available; it is
    used whenever the provider is missing, raises, or returns a blocked,
    truncated or empty answer.
    """

    def __init__(
        self,
        settings: Settings,
        provider: TextProvider | None,
    ) -> None:
        self.settings = settings
        self.provider = provider

    def _price(self, amount: float) -> str:
        return f"{self.settings.CURRENCY_SYMBOL}{format_amount(amount)}"

    def format_products(self, products: list[Product]) -> str:
        """Render products as the numbered block sent to the model."""
        lines: list[str] = []
        for idx, p in enumerate(products, 1):
            details: list[str] = []
            if p.rating > 0:
                details.append(f"rating {p.rating:g}/5")
            if p.discount > 0:
                details.append(f"{p.discount:g}% off")
            if p.reviews > 0:
                details.append(f"{p.reviews:,} reviews")
            detail_str = f" ({', '.join(details)})" if details else ""
            lines.append(
                f"{idx}. {p.title}\n"
                f"   {self._price(p.price)} - {p.store}{detail_str}"
            )
        return "\n\n".join(lines)

    def build_prompt(self, products: list[Product], note: str) -> str:
        note_block = f"Note: {note}\n\n" if note else ""
        return (
            f"Analyze these top {len(products)} products and provide a "
            "concise, enthusiastic recommendation. Give a whole paragraph "
            "highlighting the key features of the product over other "
            "products.\n\n"
            "Focus on:\n"
            "1. Identify the BEST VALUE product (consider price, "
            "discount, rating)\n"
            "2. Clearly justify your choice with specific feature "
            "comparisons\n"
            "3. Be friendly and encouraging\n\n"
            f"{note_block}Products:\n{self.format_products(products)}\n\n"
            "Provide your recommendation:"
        )

    def fallback_summary(
        self, products: list[Product], note: str = "",
    ) -> str:
        """Compose the verdict locally from the top product's details."""
        if not products:
            return "No products available to analyze."

        best = products[0]
        parts = [
            f"Our top recommendation is the **{best.title}** from "
            f"{best.store} for {self._price(best.price)}."
        ]
        if best.discount > 0:
            parts.append(
                f"This deal includes **{best.discount:g}% off** the "
                "original price, making it an excellent value choice."
            )
        else:
            parts.append(
                "It stands out as the best choice based on its "
                "competitive price and overall value."
            )

        if best.rating > 0:
            parts.append(
                f"Customers rate it **{best.rating:g}/5**."
            )
            if best.reviews > 0:
                parts.append(
                    f"With {best.reviews:,} reviews, you can shop "
                    "with confidence."
                )
        elif best.reviews > 0:
            parts.append(
                f"It has been reviewed by {best.reviews:,} customers."
            )

        others = len(products) - 1
        if others > 0:
            most_expensive = max(products, key=lambda p: p.price)
            savings = most_expensive.price - best.price
            if savings > 0:
                plural = "s" if others > 1 else ""
                parts.append(
                    f"Compared with the {others} other option{plural} "
                    "we found, choosing this deal lets you **save up to "
                    f"{self._price(savings)}!**"
                )

        if note:
            parts.append(note)
        return " ".join(parts)

    async def generate(
        self, products: list[Product], note: str = "",
    ) -> Verdict:
        """Return the verdict for at most ``VERDICT_CANDIDATES`` products."""
        top = products[: self.settings.VERDICT_CANDIDATES]
        if self.provider is None or not top:
            logger.info("Text provider unavailable, using fallback summary")
            return Verdict(self.fallback_summary(top, note), False)

        try:
            generation = await asyncio.to_thread(
                self.provider.generate,
                SYSTEM_INSTRUCTION,
                self.build_prompt(top, note),
            )
        except Exception as exc:
            logger.error(
                "Verdict generation failed: %s", exc, exc_info=True
            )
            return Verdict(self.fallback_summary(top, note), False)

        if not generation.ok:
            logger.warning(
                "Unusable verdict from provider (%s), using fallback",
                generation.failure_reason or "empty",
            )
            return Verdict(self.fallback_summary(top, note), False)

        text = generation.text.strip()
        if note:
            text = f"{text} {note}"
        logger.info("AI verdict generated successfully")
        return Verdict(text, True)
