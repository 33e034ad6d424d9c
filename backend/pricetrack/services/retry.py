"""Backoff policy shared by the job runner and the daily run."""

import random

FIRST_BACKOFF_SECONDS = 0.5
LATER_BACKOFF_SECONDS = 2.0
MAX_JITTER_SECONDS = 0.25


def backoff_seconds(attempt: int, jitter: float | None = None) -> float:
    """Delay before retrying after failed attempt number ``attempt`` (1-based)."""
    base = FIRST_BACKOFF_SECONDS if attempt <= 1 else LATER_BACKOFF_SECONDS
    if jitter is None:
        jitter = random.uniform(0, MAX_JITTER_SECONDS)
    return base + jitter
