"""Apply-locally, commit-remotely updates with rollback on failure."""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def apply_optimistically(
    capture: Callable[[], T],
    restore: Callable[[T], None],
    apply: Callable[[], None],
    commit: Callable[[], R],
) -> R:
    """Run ``apply`` immediately, then ``commit``; restore the captured state if it raises.

    The commit error is re-raised after the rollback so the caller can surface it.
    """
    before = capture()
    apply()
    try:
        return commit()
    except Exception:
        logger.info("Remote commit failed; rolling back local change")
        restore(before)
        raise
