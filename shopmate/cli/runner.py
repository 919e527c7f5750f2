# shopmate/cli/runner.py

"""Headless CLI runner around the aggregation pipeline."""

import json
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shopmate.config.settings import Settings
from shopmate.models.aggregation import AggregationResult, PipelineState
from shopmate.models.product import ScoredProduct
from shopmate.services.pipeline_orchestrator import PipelineOrchestrator
from shopmate.services.verdict_generator import format_amount
from shopmate.storage.file_manager import FileManager

logger = logging.getLogger("shopmate.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_table(result: AggregationResult, currency: str) -> None:
    """Render the ranked items and the verdict to stdout."""
    table = Table(
        title="Ranked Results",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Store", style="magenta")
    table.add_column("Rating", justify="center")
    table.add_column("Score", justify="right")
    table.add_column("Link", overflow="fold", style="dim")

    for idx, p in enumerate(result.items, 1):
        score = (
            f"{p.composite_score:.2f}"
            if isinstance(p, ScoredProduct)
            and p.composite_score is not None
            else "—"
        )
        table.add_row(
            str(idx),
            p.title[:60],
            f"{currency}{format_amount(p.price)}",
            p.store,
            f"{p.rating:g}" if p.rating else "—",
            score,
            p.link,
        )

    console = Console()
    console.print(table)
    console.print(Panel(result.summary, title="Verdict"))


def _print_sources(result: AggregationResult) -> None:
    for report in result.metadata.sources:
        if report.type == "error":
            _err.print(f"[red]{report.name}: {report.error}[/red]")
        elif report.type == "empty":
            _err.print(f"[yellow]{report.name}: 0 products[/yellow]")
        else:
            _err.print(f"[dim]{report.name}: {report.count} products[/dim]")


def _save(
    file_manager: FileManager, query: str, result: AggregationResult,
) -> None:
    """Save JSON payload + CSV export, reporting but not raising errors."""
    try:
        path = file_manager.save_result(query, result)
        _err.print(f"[dim]Saved result → {path}[/dim]")
        csv_path = file_manager.export_csv(query, result)
        _err.print(f"[dim]Exported CSV → {csv_path}[/dim]")
    except OSError as exc:
        logger.error("Save failed: %s", exc, exc_info=True)
        _err.print(f"[red]Save failed: {exc}[/red]")


async def cli_search(
    query: str,
    settings: Settings,
    output_format: str = "json",
    save: bool = False,
) -> int:
    """Run one aggregation and return an exit code (0=ok, 1=fail)."""
    orchestrator = PipelineOrchestrator.from_settings(settings)
    _err.print(f"[bold]Searching:[/bold] {query}")

    result = await orchestrator.aggregate(query)
    _print_sources(result)

    if result.state is not PipelineState.DONE:
        _err.print(f"[yellow]{result.summary}[/yellow]")
        return 1

    meta = result.metadata
    ranking = "AI ranked" if meta.ranked_by_ai else "price sorted"
    _err.print(
        f"[green]✓ {meta.total_results} products ({ranking}, "
        f"{meta.direct_links} direct links, "
        f"{meta.redirect_links} redirects) in {meta.fetch_time_ms}ms[/green]"
    )

    if save:
        _save(FileManager(settings.RESULTS_DIR), query, result)

    if output_format == "table":
        _print_table(result, settings.CURRENCY_SYMBOL)
    else:
        json.dump(
            result.to_dict(),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    return 0
