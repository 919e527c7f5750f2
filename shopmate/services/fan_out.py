# shopmate/services/fan_out.py

"""Concurrent source execution, each call bounded by its own deadline."""

import asyncio
import importlib
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from shopmate.config.settings import Settings
from shopmate.models.aggregation import SourceReport
from shopmate.models.product import Product

logger = logging.getLogger("shopmate.fan_out")


def _load_source_class(dotted_path: str) -> type[Any]:
    """Dynamically import a source adapter class from its dotted path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


@dataclass
class SourceBatch:
    """Products returned by one source, tagged with its registry entry."""

    source_id: str
    label: str
    kind: str
    products: list[Product] = field(
        default_factory=lambda: list[Product]()
    )


@dataclass
class FanOutResult:
    """Batches and reports, both in registry (priority) order."""

    batches: list[SourceBatch]
    reports: list[SourceReport]


class SourceCall:
    """One adapter invocation with an explicit deadline.

    When the deadline passes the underlying task is cancelled and its
    eventual result is dropped. Sync adapters run in a worker thread
    that cannot be interrupted, so their late result is simply never
    read. The thread itself lives on until the adapter returns, and
    ``asyncio.run`` joins it at shutdown. Registry adapters are built
    with the run's ``settings`` so their own request timeouts and
    retry budget stay within ``SOURCE_TIMEOUT``.
    """

    def __init__(
        self,
        source: dict[str, str],
        timeout: float,
        adapter: Any | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.source = source
        self.timeout = timeout
        self.adapter = adapter
        self.settings = settings
        self.deadline: float | None = None
        self.elapsed_ms: float = 0.0

    @property
    def source_id(self) -> str:
        return self.source["id"]

    def _resolve_adapter(self) -> Any:
        if self.adapter is None:
            cls = _load_source_class(self.source["scraper"])
            if self.settings is not None:
                self.adapter = cls(self.settings)
            else:
                self.adapter = cls()
        return self.adapter

    async def _invoke(self, query: str) -> list[Product]:
        adapter = self._resolve_adapter()
        fetch = adapter.fetch
        if inspect.iscoroutinefunction(fetch):
            result = await fetch(query)
        else:
            result = await asyncio.to_thread(fetch, query)
        items = list(result or [])
        products = [p for p in items if isinstance(p, Product)]
        skipped = len(items) - len(products)
        if skipped:
            logger.warning(
                "%s returned %d non-Product items, ignoring them",
                self.source["label"],
                skipped,
            )
        return products

    async def run(self, query: str) -> list[Product]:
        """Run the adapter, raising ``asyncio.TimeoutError`` past the deadline."""
        loop = asyncio.get_running_loop()
        self.deadline = loop.time() + self.timeout
        start = time.monotonic()
        try:
            return await asyncio.wait_for(
                self._invoke(query), timeout=self.timeout
            )
        finally:
            self.elapsed_ms = (time.monotonic() - start) * 1000


class FanOutExecutor:
    """Invoke every enabled source concurrently and report per source.

    A source that raises or misses its deadline contributes nothing;
    it never blocks or aborts its siblings.
    """

    def __init__(
        self,
        settings: Settings,
        adapters: dict[str, Any] | None = None,
    ) -> None:
        self.settings = settings
        self.adapters = adapters or {}

    def _timeout_for(self, source: dict[str, str]) -> float:
        override = source.get("timeout")
        if override is not None:
            return float(override)
        return float(self.settings.SOURCE_TIMEOUT)

    def _report(
        self,
        call: SourceCall,
        outcome: list[Product] | BaseException,
    ) -> SourceReport:
        label = call.source["label"]
        if isinstance(outcome, asyncio.TimeoutError):
            logger.error(
                "%s timed out after %.1fs", label, call.timeout
            )
            return SourceReport(
                name=label,
                type="error",
                error=f"Timeout after {call.timeout:.1f}s",
                elapsed_ms=call.elapsed_ms,
            )
        if isinstance(outcome, BaseException):
            logger.error(
                "%s source error: %s",
                label,
                outcome,
                exc_info=outcome,
            )
            return SourceReport(
                name=label,
                type="error",
                error=str(outcome) or type(outcome).__name__,
                elapsed_ms=call.elapsed_ms,
            )
        if not outcome:
            logger.warning(
                "%s returned 0 products (source may be blocked)", label
            )
            return SourceReport(
                name=label, type="empty", elapsed_ms=call.elapsed_ms
            )

        redirect_domain = self.settings.REDIRECT_DOMAIN
        redirects = sum(
            1 for p in outcome if p.is_redirect_link(redirect_domain)
        )
        logger.info(
            "%s: %d products (%d direct, %d redirects) in %.0fms",
            label,
            len(outcome),
            len(outcome) - redirects,
            redirects,
            call.elapsed_ms,
        )
        return SourceReport(
            name=label,
            count=len(outcome),
            type=call.source["kind"],
            direct_links=len(outcome) - redirects,
            redirect_links=redirects,
            elapsed_ms=call.elapsed_ms,
        )

    async def run(
        self, query: str, sources: list[dict[str, str]],
    ) -> FanOutResult:
        calls = [
            SourceCall(
                src,
                self._timeout_for(src),
                self.adapters.get(src["id"]),
                self.settings,
            )
            for src in sources
        ]
        outcomes = await asyncio.gather(
            *(call.run(query) for call in calls),
            return_exceptions=True,
        )

        batches: list[SourceBatch] = []
        reports: list[SourceReport] = []
        for call, outcome in zip(calls, outcomes):
            reports.append(self._report(call, outcome))
            products = outcome if isinstance(outcome, list) else []
            batches.append(
                SourceBatch(
                    source_id=call.source_id,
                    label=call.source["label"],
                    kind=call.source["kind"],
                    products=products,
                )
            )
        return FanOutResult(batches=batches, reports=reports)
