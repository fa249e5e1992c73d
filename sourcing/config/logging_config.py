# sourcing/config/logging_config.py

"""Per-run timestamped logging configuration for the sourcing pipeline.

Each launch creates a dedicated log file inside ``logs/``, named with the
launch timestamp (e.g. ``logs/run_20260214_153045.log``).  Handlers
hang off the ``sourcing`` logger only; its children propagate into them:

* ``sourcing.<marketplace id>`` (``sourcing.aliexpress``,
  ``sourcing.alibaba``, ``sourcing.aliexpress_true``): one per catalog
  client, logging every GET, cache hit and upstream error status.
* ``sourcing.cache`` / ``sourcing.ratelimit``: cache hits and evictions,
  throttle waits.
* ``sourcing.normalize``: payloads that fell back to placeholder data.
* ``sourcing.aggregator`` / ``sourcing.filters``: fan-out, per-source
  failures and filter counts.
* ``sourcing.scraper`` / ``sourcing.importer`` / ``sourcing.ai``: URL
  imports and AI rewrites.
* ``sourcing.workflow`` / ``sourcing.commit`` / ``sourcing.storage`` /
  ``sourcing.import_history``: review transitions and catalog commits.
* ``sourcing.ui`` / ``sourcing.cli`` / ``sourcing.main``: front ends.

A rate-limited or rejected marketplace call shows up as a WARNING from
its client logger, so it is also echoed to stderr; everything at INFO
and below stays in the file because the TUI owns the terminal.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from sourcing.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Initialise the root ``sourcing`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    target_dir: Path = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("sourcing")
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, TUI restarts) keep the first handlers
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
