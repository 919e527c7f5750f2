# shopmate/models/aggregation.py

"""Result containers produced by the aggregation pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from shopmate.models.product import Product


class PipelineState(Enum):
    """States of a single aggregation run."""

    NO_SOURCES_CONFIGURED = "no_sources_configured"
    FANNING_OUT = "fanning_out"
    MERGED_EMPTY = "merged_empty"
    MERGED_NONEMPTY = "merged_nonempty"
    SCORING = "scoring"
    SCORED_OK = "scored_ok"
    SCORING_FAILED = "scoring_failed"
    RANKED = "ranked"
    VERDICT_GENERATED = "verdict_generated"
    DONE = "done"


@dataclass
class SourceReport:
    """Outcome of one source during fan-out (observability only)."""

    name: str
    count: int = 0
    type: str = "empty"  # "direct", "aggregator", "empty", "error"
    error: str = ""
    direct_links: int = 0
    redirect_links: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "count": self.count,
            "type": self.type,
        }
        if self.type == "aggregator":
            data["directLinks"] = self.direct_links
            data["redirectLinks"] = self.redirect_links
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AggregationMetadata:
    """Run statistics attached to every AggregationResult."""

    total_results: int = 0
    top_price: float | None = None
    top_store: str | None = None
    ranked_by_ai: bool = False
    fetch_time_ms: int = 0
    direct_links: int = 0
    redirect_links: int = 0
    sources: tuple[SourceReport, ...] = ()
    strategy: dict[str, bool] = field(
        default_factory=lambda: dict[str, bool]()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalResults": self.total_results,
            "topPrice": self.top_price,
            "topStore": self.top_store,
            "rankedByAI": self.ranked_by_ai,
            "fetchTime": self.fetch_time_ms,
            "directLinks": self.direct_links,
            "redirectLinks": self.redirect_links,
            "sources": [s.to_dict() for s in self.sources],
            "strategy": dict(self.strategy),
        }


@dataclass(frozen=True)
class AggregationResult:
    """Sole output of the pipeline: ranked items, verdict and metadata."""

    items: tuple[Product, ...]
    summary: str
    metadata: AggregationMetadata
    state: PipelineState = PipelineState.DONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [p.to_dict() for p in self.items],
            "summary": self.summary,
            "metadata": self.metadata.to_dict(),
        }
