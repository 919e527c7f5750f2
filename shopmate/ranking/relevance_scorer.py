# shopmate/ranking/relevance_scorer.py

"""External relevance scoring with a fail-closed result variant."""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any

from shopmate.config.settings import Settings
from shopmate.models.product import ScoredProduct
from shopmate.providers.base import RelevanceProvider

logger = logging.getLogger("shopmate.ranking")

_REQUIRED_FIELDS = ("id", "relevanceScore", "irrelevancePenalty")


@dataclass(frozen=True)
class ScoringOk:
    """Scoring succeeded; every product carries relevance and penalty."""

    products: list[ScoredProduct]


@dataclass(frozen=True)
class ScoringFailed:
    """Scoring was unavailable; ``products`` are the untouched candidates."""

    reason: str
    products: list[ScoredProduct]


ScoringResult = ScoringOk | ScoringFailed


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def parse_scores(payload: Any) -> dict[str, tuple[float, float]]:
    """Validate a provider payload into ``{id: (relevance, penalty)}``.

    Raises:
        ValueError: the payload is not a list of complete score entries.
    """
    if not isinstance(payload, list):
        msg = f"Expected a list of scores, got {type(payload).__name__}"
        raise ValueError(msg)

    scores: dict[str, tuple[float, float]] = {}
    for entry in payload:
        if not isinstance(entry, dict):
            msg = f"Score entry is not an object: {entry!r}"
            raise ValueError(msg)
        missing = [f for f in _REQUIRED_FIELDS if f not in entry]
        if missing:
            msg = f"Score entry missing {', '.join(missing)}: {entry!r}"
            raise ValueError(msg)
        relevance = entry["relevanceScore"]
        penalty = entry["irrelevancePenalty"]
        if not _is_number(relevance) or not _is_number(penalty):
            msg = f"Non-numeric or non-finite score in entry: {entry!r}"
            raise ValueError(msg)
        scores.setdefault(
            str(entry["id"]), (float(relevance), float(penalty))
        )
    return scores


class RelevanceScorer:
    """Delegate relevance scoring of a bounded candidate slice.

    Never raises: an unconfigured provider, a provider exception or a
    malformed payload all come back as :class:`ScoringFailed`.
    """

    def __init__(
        self,
        settings: Settings,
        provider: RelevanceProvider | None,
    ) -> None:
        self.settings = settings
        self.provider = provider

    def _normalise_penalty(self, penalty: float) -> float:
        return self.settings.IRRELEVANCE_PENALTY if penalty > 0 else 0.0

    async def score(
        self, query: str, candidates: list[ScoredProduct],
    ) -> ScoringResult:
        if self.provider is None:
            logger.warning(
                "Relevance provider not configured, skipping AI ranking"
            )
            return ScoringFailed("provider not configured", candidates)
        if not candidates:
            return ScoringFailed("no candidates", candidates)

        request = [
            {
                "id": p.id,
                "title": p.title,
                "is_accessory": p.is_accessory,
            }
            for p in candidates
        ]
        try:
            payload = await asyncio.to_thread(
                self.provider.score, query, request
            )
            scores = parse_scores(payload)
        except Exception as exc:
            logger.error(
                "Relevance scoring failed for query '%s': %s",
                query,
                exc,
                exc_info=True,
            )
            return ScoringFailed(str(exc), candidates)

        neutral = self.settings.NEUTRAL_RELEVANCE
        scored: list[ScoredProduct] = []
        for product in candidates:
            relevance, penalty = scores.get(product.id, (neutral, 0.0))
            scored.append(
                ScoredProduct.from_product(
                    product,
                    relevance_score=max(0.0, min(1.0, relevance)),
                    irrelevance_penalty=self._normalise_penalty(penalty),
                )
            )

        missing = sum(1 for p in candidates if p.id not in scores)
        if missing:
            logger.info(
                "Provider omitted %d of %d candidates, using neutral scores",
                missing,
                len(candidates),
            )
        return ScoringOk(scored)
