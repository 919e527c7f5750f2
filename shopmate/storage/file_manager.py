# shopmate/storage/file_manager.py

"""Handles saving aggregation results to disk."""

import csv
import json
import logging
import re
from datetime import datetime
from pathlib import Path

from shopmate.models.aggregation import AggregationResult

logger = logging.getLogger("shopmate.storage")


class FileManager:
    """Handles saving aggregation results to disk."""

    def __init__(self, results_dir: Path) -> None:
        self.results_dir = results_dir
        self.results_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "FileManager initialised, results_dir=%s", self.results_dir
        )

    @staticmethod
    def _stem(query: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safe = re.sub(r"[^\w.-]+", "_", query.strip())
        return f"{safe}_{timestamp}"

    def save_result(
        self, query: str, result: AggregationResult,
    ) -> Path:
        """Save the full result payload to a timestamped JSON file."""
        filepath = self.results_dir / f"{self._stem(query)}.json"
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)

        logger.info(
            "Saved %d products for query '%s' to %s",
            len(result.items),
            query,
            filepath,
        )
        return filepath

    def export_csv(
        self, query: str, result: AggregationResult,
    ) -> Path:
        """Export ranked items to a CSV file, keeping the ranked order."""
        filepath = self.results_dir / f"export_{self._stem(query)}.csv"

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(
                [
                    "Rank",
                    "Title",
                    "Price",
                    "Currency",
                    "Store",
                    "Rating",
                    "Reviews",
                    "Discount",
                    "Link",
                ]
            )
            for rank, p in enumerate(result.items, 1):
                writer.writerow(
                    [
                        rank,
                        p.title,
                        p.price,
                        p.currency,
                        p.store,
                        p.rating,
                        p.reviews,
                        p.discount,
                        p.link,
                    ]
                )

        logger.info(
            "Exported %d products for query '%s' to %s",
            len(result.items),
            query,
            filepath,
        )
        return filepath
