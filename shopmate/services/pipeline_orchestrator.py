# shopmate/services/pipeline_orchestrator.py

"""Orchestrates fan-out, merge, ranking and verdict for one query."""

import logging
import time
from typing import Any

from shopmate.config.settings import Settings
from shopmate.models.aggregation import (
    AggregationMetadata,
    AggregationResult,
    PipelineState,
    SourceReport,
)
from shopmate.models.product import Product
from shopmate.providers.base import RelevanceProvider, TextProvider
from shopmate.ranking.rank_composer import (
    RankComposer,
    RankOutcome,
    price_sorted,
)
from shopmate.ranking.relevance_scorer import RelevanceScorer, ScoringOk
from shopmate.ranking.value_scorer import ValueScorer
from shopmate.services.fan_out import FanOutExecutor
from shopmate.services.merger import MergeResult, ProductMerger
from shopmate.services.verdict_generator import VerdictGenerator

logger = logging.getLogger("shopmate.orchestrator")

RANKING_UNAVAILABLE_NOTE = (
    "(Note: AI ranking temporarily unavailable, results filtered "
    "and sorted by price.)"
)


class _Run:
    """Request-scoped state trail; no state may be entered twice."""

    def __init__(self, query: str) -> None:
        self.query = query
        self.started = time.monotonic()
        self.states: list[PipelineState] = []

    def advance(self, state: PipelineState) -> None:
        if state in self.states:
            msg = f"Pipeline state {state.name} entered twice"
            raise RuntimeError(msg)
        self.states.append(state)
        logger.debug("[%s] -> %s", self.query, state.name)

    @property
    def state(self) -> PipelineState:
        return self.states[-1]

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class PipelineOrchestrator:
    """Run the aggregation pipeline once per query.

    All collaborators come from the constructor; nothing is looked up
    globally, so tests can inject fake sources and providers. Use
    :meth:`from_settings` to wire the real Gemini providers.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        adapters: dict[str, Any] | None = None,
        relevance_provider: RelevanceProvider | None = None,
        text_provider: TextProvider | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.fan_out = FanOutExecutor(self.settings, adapters)
        self.merger = ProductMerger(self.settings)
        self.value_scorer = ValueScorer(self.settings)
        self.relevance_scorer = RelevanceScorer(
            self.settings, relevance_provider
        )
        self.composer = RankComposer(self.settings)
        self.verdict_generator = VerdictGenerator(
            self.settings, text_provider
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineOrchestrator":
        """Build an orchestrator backed by Gemini when a key is configured."""
        if not settings.gemini_configured:
            logger.warning(
                "GEMINI_API_KEY not configured, AI ranking and verdicts "
                "will use local fallbacks"
            )
            return cls(settings)

        from shopmate.providers.gemini_client import GeminiClient
        from shopmate.providers.gemini_providers import (
            GeminiRelevanceProvider,
            GeminiTextProvider,
        )

        client = GeminiClient(settings)
        return cls(
            settings,
            relevance_provider=GeminiRelevanceProvider(client),
            text_provider=GeminiTextProvider(client),
        )

    # ── Messages ─────────────────────────────────────────

    @staticmethod
    def setup_message() -> str:
        return (
            "No data sources enabled. Enable USE_SERPAPI and/or "
            "USE_AMAZON_FLIPKART_DIRECT in .env"
        )

    def no_results_message(self, query: str) -> str:
        message = (
            f"No products found for '{query}'. "
            "Try a different search term."
        )
        if self.settings.USE_SERPAPI and not self.settings.serpapi_configured:
            message += (
                " Please add SERPAPI_KEY to the .env file. Get a free "
                f"key at: {self.settings.SERPAPI_SIGNUP_URL}"
            )
        return message

    # ── Result assembly ──────────────────────────────────

    def _result(
        self,
        run: _Run,
        items: list[Product],
        summary: str,
        reports: list[SourceReport],
        merged: MergeResult | None = None,
        ranked_by_ai: bool = False,
    ) -> AggregationResult:
        top = items[0] if items else None
        metadata = AggregationMetadata(
            total_results=len(items),
            top_price=top.price if top else None,
            top_store=top.store if top else None,
            ranked_by_ai=ranked_by_ai,
            fetch_time_ms=run.elapsed_ms,
            direct_links=merged.direct_links if merged else 0,
            redirect_links=merged.redirect_links if merged else 0,
            sources=tuple(reports),
            strategy=self.settings.strategy(),
        )
        return AggregationResult(
            items=tuple(items),
            summary=summary,
            metadata=metadata,
            state=run.state,
        )

    # ── Ranking stages ───────────────────────────────────

    async def _rank(
        self, run: _Run, query: str, items: list[Product],
    ) -> tuple[RankOutcome, str]:
        limit = self.settings.RANKING_CANDIDATES
        top_n, remainder = items[:limit], items[limit:]

        run.advance(PipelineState.SCORING)
        candidates = [self.value_scorer.score(p) for p in top_n]
        scoring = await self.relevance_scorer.score(query, candidates)
        run.advance(
            PipelineState.SCORED_OK
            if isinstance(scoring, ScoringOk)
            else PipelineState.SCORING_FAILED
        )

        outcome = self.composer.compose(query, scoring, remainder)
        run.advance(PipelineState.RANKED)

        note = "" if outcome.ranked_by_ai else RANKING_UNAVAILABLE_NOTE
        verdict = await self.verdict_generator.generate(
            outcome.items, note
        )
        run.advance(PipelineState.VERDICT_GENERATED)
        return outcome, verdict.text

    def _degraded(
        self, query: str, items: list[Product],
    ) -> tuple[RankOutcome, str]:
        filtered, removed = self.composer.fallback(query, items)
        summary = self.verdict_generator.fallback_summary(
            filtered[: self.settings.VERDICT_CANDIDATES],
            RANKING_UNAVAILABLE_NOTE,
        )
        return RankOutcome(filtered, False, removed), summary

    # ── Entry point ──────────────────────────────────────

    async def aggregate(self, query: str) -> AggregationResult:
        """Aggregate, rank and summarise products for *query*.

        Never raises for source or provider failures; the worst case
        is a degraded but valid result.
        """
        run = _Run(query)
        sources = self.settings.enabled_sources()
        if not sources:
            run.advance(PipelineState.NO_SOURCES_CONFIGURED)
            logger.warning("No data sources enabled")
            return self._result(run, [], self.setup_message(), [])

        run.advance(PipelineState.FANNING_OUT)
        logger.info(
            "Aggregating products for '%s' from %s",
            query,
            ", ".join(s["label"] for s in sources),
        )
        fan_out = await self.fan_out.run(query, sources)
        merged = self.merger.merge(fan_out.batches)

        if not merged.products:
            run.advance(PipelineState.MERGED_EMPTY)
            return self._result(
                run,
                [],
                self.no_results_message(query),
                fan_out.reports,
                merged,
            )

        run.advance(PipelineState.MERGED_NONEMPTY)
        items = price_sorted(merged.products)

        try:
            outcome, summary = await self._rank(run, query, items)
        except Exception as exc:
            logger.error(
                "Ranking/verdict error for '%s': %s",
                query,
                exc,
                exc_info=True,
            )
            outcome, summary = self._degraded(query, items)

        run.advance(PipelineState.DONE)
        logger.info(
            "Aggregated %d products for '%s' in %dms (ranked by AI: %s)",
            len(outcome.items),
            query,
            run.elapsed_ms,
            outcome.ranked_by_ai,
        )
        return self._result(
            run,
            outcome.items,
            summary,
            fan_out.reports,
            merged,
            ranked_by_ai=outcome.ranked_by_ai,
        )
