# shopmate/config/logging_config.py

"""Per-run timestamped logging configuration for shopmate.

Each launch creates a dedicated log file inside ``logs/``, named with
the launch timestamp (e.g. ``logs/run_20260214_153045.log``). Every
``shopmate.*`` logger (fan-out, merger, ranking, providers, scrapers)
routes through this file handler, so one aggregation run can be traced
end to end in a single file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from shopmate.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Initialise the root ``shopmate`` logger for the current run.

    Args:
        logs_dir: Directory for the run log. Defaults to
            :attr:`Settings.LOGS_DIR`.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("shopmate")
    root_logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls (e.g. tests)
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, log file: %s", log_file)

    return log_file
