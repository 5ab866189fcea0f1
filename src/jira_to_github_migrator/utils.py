"""
Utility functions for the JIRA to GitHub migration tool.
"""

from __future__ import annotations

import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_CONSOLE_LEVELS: dict[int, int] = {0: logging.WARNING, 1: logging.INFO}


def setup_logging(*, verbosity: int = 0, log_file: str = "migration.log") -> None:
    """Configure logging for the migration process.

    The console shows warnings by default, INFO with -v and DEBUG with -vv.
    The log file always receives everything.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(threadName)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_CONSOLE_LEVELS.get(verbosity, logging.DEBUG))
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO)


def normalize_label(text: str | None) -> str:
    """Normalize a JIRA value (status, priority, type) into a GitHub label suffix."""
    if not text:
        return "unknown"
    return re.sub(r"\s+", "-", text.strip().lower())


def process_in_batches(items: Sequence[T], batch_size: int, processor: Callable[[T], R]) -> list[R]:
    """Run processor over items in fixed-size parallel batches.

    Every item of a batch is submitted at once and the whole batch is awaited
    before the next one starts. Results keep the input order.
    """
    if batch_size < 1:
        msg = f"Batch size must be positive, got {batch_size}"
        raise ValueError(msg)

    results: list[R] = []
    total_batches = math.ceil(len(items) / batch_size)
    for index, start in enumerate(range(0, len(items), batch_size), start=1):
        batch = items[start : start + batch_size]
        logger.info(f"Processing batch {index}/{total_batches} ({len(batch)} items)")
        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="migrate") as executor:
            futures = [executor.submit(processor, item) for item in batch]
            results.extend(future.result() for future in futures)
    return results
