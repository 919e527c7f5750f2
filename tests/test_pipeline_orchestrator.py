# tests/test_pipeline_orchestrator.py

"""End-to-end tests for PipelineOrchestrator with fake sources and providers."""

import asyncio
import unittest
from typing import Any
from unittest.mock import patch

from shopmate.config.settings import Settings
from shopmate.models.aggregation import PipelineState
from shopmate.models.product import Product, ScoredProduct
from shopmate.providers.base import TextGeneration
from shopmate.providers.errors import ProviderHTTPError
from shopmate.services.pipeline_orchestrator import (
    RANKING_UNAVAILABLE_NOTE,
    PipelineOrchestrator,
)


def _make(
    title: str,
    price: float,
    store: str = "Amazon",
    link: str = "",
) -> Product:
    slug = title.lower().replace(" ", "-")
    return Product(
        title=title,
        price=price,
        store=store,
        link=link or f"https://{store.lower()}.example/{slug}",
    )


def _settings(**overrides: Any) -> Settings:
    """Both strategies on, no real credentials."""
    values: dict[str, Any] = {
        "USE_AMAZON_FLIPKART_DIRECT": True,
        "USE_SERPAPI": True,
        "SERPAPI_KEY": "test-key",
        "GEMINI_API_KEY": "",
        "SOURCE_TIMEOUT": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


class _Source:
    """Async source adapter returning a fixed list after a delay."""

    def __init__(
        self,
        products: list[Product] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.products = products or []
        self.delay = delay
        self.error = error

    async def fetch(self, query: str) -> list[Product]:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.products)


class _KeywordRelevance:
    """Deterministic relevance: titles containing 'pad' are accessories."""

    def __init__(self) -> None:
        self.requests: list[list[dict[str, Any]]] = []

    def score(
        self, query: str, candidates: list[dict[str, Any]],
    ) -> Any:
        self.requests.append(candidates)
        return [
            {
                "id": c["id"],
                "relevanceScore": 0.2 if "pad" in c["title"].lower() else 0.9,
                "irrelevancePenalty": (
                    0.9 if "pad" in c["title"].lower() else 0.0
                ),
            }
            for c in candidates
        ]


class _StaticRelevance:
    """Relevance provider returning a fixed payload or raising."""

    def __init__(
        self, payload: Any = None, error: Exception | None = None,
    ) -> None:
        self.payload = payload
        self.error = error

    def score(
        self, query: str, candidates: list[dict[str, Any]],
    ) -> Any:
        if self.error is not None:
            raise self.error
        return self.payload


class _StaticText:
    """Text provider returning a fixed verdict."""

    def generate(self, instruction: str, prompt: str) -> TextGeneration:
        return TextGeneration(text="The first item is the best value.")


class TestAggregateSuccess(unittest.IsolatedAsyncioTestCase):
    """Happy paths through fan-out, merge, ranking and verdict."""

    async def test_slow_source_excluded_and_ranked(self) -> None:
        """Three sources, one times out: results come from the other two."""
        amazon = [_make(f"Mouse Model {i}", 500.0 + i * 10) for i in range(10)]
        serp = [
            _make(f"Mouse Deal {i}", 600.0 + i, store="Croma")
            for i in range(5)
        ]
        orchestrator = PipelineOrchestrator(
            _settings(SOURCE_TIMEOUT=0.05),
            adapters={
                "amazon": _Source(amazon),
                "flipkart": _Source([_make("Late", 1.0)], delay=5.0),
                "serpapi": _Source(serp),
            },
            relevance_provider=_KeywordRelevance(),
            text_provider=_StaticText(),
        )
        result = await orchestrator.aggregate("wireless mouse")

        self.assertIs(result.state, PipelineState.DONE)
        meta = result.metadata
        self.assertTrue(meta.ranked_by_ai)
        self.assertEqual(meta.total_results, 15)
        self.assertEqual(len(result.items), 15)
        self.assertNotIn("Late", [p.title for p in result.items])
        reports = {r.name: r for r in meta.sources}
        self.assertEqual(reports["Flipkart"].type, "error")
        self.assertEqual(reports["Amazon"].count, 10)
        self.assertEqual(reports["SerpAPI (Other Stores)"].count, 5)
        self.assertEqual(
            meta.strategy,
            {"amazonFlipkartDirect": True, "serpApiOthers": True},
        )
        self.assertEqual(result.summary, "The first item is the best value.")

    async def test_metadata_top_item(self) -> None:
        """topPrice and topStore describe items[0]."""
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source([_make("Mouse B", 900.0)]),
                "flipkart": _Source(
                    [_make("Mouse A", 700.0, store="Flipkart")]
                ),
            },
            relevance_provider=_KeywordRelevance(),
        )
        result = await orchestrator.aggregate("mouse")
        first = result.items[0]
        self.assertEqual(result.metadata.top_price, first.price)
        self.assertEqual(result.metadata.top_store, first.store)
        self.assertEqual(result.metadata.total_results, len(result.items))

    async def test_accessory_penalised_below_primary(self) -> None:
        """With scoring available a cheap mouse pad ranks below the mouse."""
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source(
                    [
                        _make("Gaming Mouse Pad", 5.0),
                        _make("Wireless Mouse", 25.0),
                    ]
                ),
                "flipkart": _Source([]),
            },
            relevance_provider=_KeywordRelevance(),
        )
        result = await orchestrator.aggregate("wireless mouse")
        self.assertEqual(
            [p.title for p in result.items],
            ["Wireless Mouse", "Gaming Mouse Pad"],
        )

    async def test_composite_scores_never_negative(self) -> None:
        products = [_make(f"Mouse Pad {i}", 5.0 + i) for i in range(4)]
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={"amazon": _Source(products), "flipkart": _Source([])},
            relevance_provider=_KeywordRelevance(),
        )
        result = await orchestrator.aggregate("mouse pad")
        for item in result.items:
            assert isinstance(item, ScoredProduct)
            self.assertIsNotNone(item.composite_score)
            self.assertGreaterEqual(item.composite_score, 0.0)

    async def test_only_top_twenty_scored(self) -> None:
        """Items beyond the candidate slice follow in price order."""
        products = [_make(f"Laptop {i:02d}", 30000.0 + i) for i in range(25)]
        relevance = _KeywordRelevance()
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={"amazon": _Source(products), "flipkart": _Source([])},
            relevance_provider=relevance,
        )
        result = await orchestrator.aggregate("laptop")
        self.assertEqual(len(relevance.requests[0]), 20)
        self.assertEqual(len(result.items), 25)
        tail = [p.price for p in result.items[20:]]
        self.assertEqual(tail, sorted(tail))
        self.assertEqual(tail[0], 30020.0)

    async def test_identical_items_deduplicated(self) -> None:
        """The same item from three sources appears once."""
        orchestrator = PipelineOrchestrator(
            _settings(),
            adapters={
                "amazon": _Source([_make("Logitech M185", 699.0)]),
                "flipkart": _Source(
                    [_make("LOGITECH M185", 699.0, store="Flipkart")]
                ),
                "serpapi": _Source(
                    [_make("logitech m185", 699.0, store="Croma")]
                ),
            },
        )
        result = await orchestrator.aggregate("logitech m185")
        self.assertEqual(len(result.items), 1)
        self.assertEqual(result.items[0].store, "Amazon")

    async def test_item_ids_unique(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source([_make("A", 1.0), _make("B", 2.0)]),
                "flipkart": _Source([_make("C", 3.0, store="Flipkart")]),
            },
        )
        result = await orchestrator.aggregate("x")
        ids = [p.id for p in result.items]
        self.assertTrue(all(ids))
        self.assertEqual(len(ids), len(set(ids)))

    async def test_idempotent_with_deterministic_fakes(self) -> None:
        """Same query and same fakes give the same items and summary."""
        def build() -> PipelineOrchestrator:
            return PipelineOrchestrator(
                _settings(),
                adapters={
                    "amazon": _Source(
                        [_make("Mouse", 699.0), _make("Mouse Pad", 99.0)]
                    ),
                    "flipkart": _Source(
                        [_make("Mouse X", 799.0, store="Flipkart")]
                    ),
                    "serpapi": _Source(
                        [_make("Mouse Y", 650.0, store="Croma")]
                    ),
                },
                relevance_provider=_KeywordRelevance(),
            )

        first = await build().aggregate("mouse")
        second = await build().aggregate("mouse")
        self.assertEqual(first.items, second.items)
        self.assertEqual(first.summary, second.summary)


class TestAggregateFallback(unittest.IsolatedAsyncioTestCase):
    """Relevance failure, provider absence and degraded paths."""

    async def test_scoring_failure_filters_accessories(self) -> None:
        """A relevance outage drops the cheap mouse pad and notes it."""
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source(
                    [
                        _make("Gaming Mouse Pad", 5.0),
                        _make("Wireless Mouse", 25.0),
                    ]
                ),
                "flipkart": _Source([]),
            },
            relevance_provider=_StaticRelevance(
                error=ProviderHTTPError(503, "unavailable")
            ),
        )
        result = await orchestrator.aggregate("wireless mouse")
        self.assertIs(result.state, PipelineState.DONE)
        self.assertFalse(result.metadata.ranked_by_ai)
        self.assertEqual(
            [p.title for p in result.items], ["Wireless Mouse"]
        )
        self.assertTrue(result.summary.endswith(RANKING_UNAVAILABLE_NOTE))

    async def test_malformed_payload_falls_back(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source([_make("Mouse B", 30.0), _make("Mouse A", 20.0)]),
                "flipkart": _Source([]),
            },
            relevance_provider=_StaticRelevance(payload={"oops": True}),
        )
        result = await orchestrator.aggregate("mouse")
        self.assertFalse(result.metadata.ranked_by_ai)
        self.assertEqual(
            [p.price for p in result.items], [20.0, 30.0]
        )

    async def test_no_provider_falls_back(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source([_make("Mouse", 30.0)]),
                "flipkart": _Source([]),
            },
        )
        result = await orchestrator.aggregate("mouse")
        self.assertFalse(result.metadata.ranked_by_ai)
        self.assertIn("**Mouse**", result.summary)
        self.assertIn(RANKING_UNAVAILABLE_NOTE, result.summary)

    async def test_unexpected_ranking_error_degrades(self) -> None:
        """An exception inside ranking still returns a valid result."""
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source(
                    [_make("Laptop", 40000.0), _make("Laptop Stand", 499.0)]
                ),
                "flipkart": _Source([]),
            },
            relevance_provider=_KeywordRelevance(),
        )
        with patch.object(
            orchestrator.composer,
            "compose",
            side_effect=RuntimeError("bug"),
        ):
            result = await orchestrator.aggregate("laptop")
        self.assertIs(result.state, PipelineState.DONE)
        self.assertFalse(result.metadata.ranked_by_ai)
        self.assertEqual([p.title for p in result.items], ["Laptop"])
        self.assertTrue(result.summary.endswith(RANKING_UNAVAILABLE_NOTE))

    async def test_all_sources_fail_gives_empty_result(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(SERPAPI_KEY=""),
            adapters={
                "amazon": _Source(error=RuntimeError("captcha")),
                "flipkart": _Source([]),
                "serpapi": _Source([]),
            },
        )
        result = await orchestrator.aggregate("unobtainium")
        self.assertIs(result.state, PipelineState.MERGED_EMPTY)
        self.assertEqual(result.items, ())
        self.assertEqual(result.metadata.total_results, 0)
        self.assertIsNone(result.metadata.top_price)
        self.assertTrue(
            result.summary.startswith(
                "No products found for 'unobtainium'."
            )
        )
        self.assertIn("SERPAPI_KEY", result.summary)
        self.assertEqual(len(result.metadata.sources), 3)

    async def test_empty_result_without_key_hint(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={"amazon": _Source([]), "flipkart": _Source([])},
        )
        result = await orchestrator.aggregate("nothing")
        self.assertNotIn("SERPAPI_KEY", result.summary)

    async def test_no_sources_configured(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_AMAZON_FLIPKART_DIRECT=False, USE_SERPAPI=False)
        )
        result = await orchestrator.aggregate("anything")
        self.assertIs(result.state, PipelineState.NO_SOURCES_CONFIGURED)
        self.assertEqual(result.items, ())
        self.assertEqual(result.summary, PipelineOrchestrator.setup_message())
        self.assertEqual(result.metadata.sources, ())
        self.assertEqual(
            result.metadata.strategy,
            {"amazonFlipkartDirect": False, "serpApiOthers": False},
        )

    async def test_result_serialises(self) -> None:
        orchestrator = PipelineOrchestrator(
            _settings(USE_SERPAPI=False),
            adapters={
                "amazon": _Source([_make("Mouse", 30.0)]),
                "flipkart": _Source(error=RuntimeError("blocked")),
            },
        )
        payload = (await orchestrator.aggregate("mouse")).to_dict()
        self.assertEqual(set(payload), {"items", "summary", "metadata"})
        self.assertEqual(payload["metadata"]["totalResults"], 1)
        self.assertFalse(payload["metadata"]["rankedByAI"])
        self.assertEqual(
            payload["metadata"]["sources"][1],
            {"name": "Flipkart", "count": 0, "type": "error",
             "error": "blocked"},
        )


class TestFromSettings(unittest.TestCase):
    """PipelineOrchestrator.from_settings provider wiring."""

    def test_no_key_no_providers(self) -> None:
        orchestrator = PipelineOrchestrator.from_settings(
            Settings(GEMINI_API_KEY="")
        )
        self.assertIsNone(orchestrator.relevance_scorer.provider)
        self.assertIsNone(orchestrator.verdict_generator.provider)

    def test_placeholder_key_no_providers(self) -> None:
        orchestrator = PipelineOrchestrator.from_settings(
            Settings(GEMINI_API_KEY="your_gemini_api_key_here")
        )
        self.assertIsNone(orchestrator.relevance_scorer.provider)

    def test_key_wires_gemini(self) -> None:
        orchestrator = PipelineOrchestrator.from_settings(
            Settings(GEMINI_API_KEY="real-key")
        )
        self.assertEqual(
            type(orchestrator.relevance_scorer.provider).__name__,
            "GeminiRelevanceProvider",
        )
        self.assertEqual(
            type(orchestrator.verdict_generator.provider).__name__,
            "GeminiTextProvider",
        )


if __name__ == "__main__":
    unittest.main()
