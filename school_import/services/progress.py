from __future__ import annotations

import math
import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Chunk progress display with tqdm (TTY only).

The integer percentage is tracked regardless of the bar so that callers
without a terminal (tests, CI, wrappers) can still read it.
"""

__all__ = [
    "ChunkProgress",
    "is_tty_enabled",
    "percent_complete",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


def percent_complete(done: int, total: int) -> int:
    """Whole percentage, halves rounded up (12.5 -> 13)."""
    if total <= 0:
        return 100
    return math.floor(done / total * 100 + 0.5)


class ChunkProgress:
    """Progress over the chunks of one import run.

    ``percent`` only moves forward: it is advanced after a chunk is accepted
    by the ledger, never for failed chunks.
    """

    def __init__(self, total_chunks: int, *, description: str = "Importing") -> None:
        self.total_chunks = total_chunks
        self.description = description
        self.completed_chunks = 0
        self.percent = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_chunks,
                desc=description,
                unit="chunk",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, chunk_index: int) -> int:
        """Record ``chunk_index`` as accepted and return the new percentage."""
        self.completed_chunks = chunk_index + 1
        if self.total_chunks:
            self.percent = max(self.percent, percent_complete(self.completed_chunks, self.total_chunks))
        if self.enabled and self.pbar is not None:
            self.pbar.n = self.completed_chunks
            self.pbar.refresh()
        return self.percent

    def skip(self, chunk_index: int) -> None:
        """Move the bar past a failed chunk without touching the percentage."""
        if self.enabled and self.pbar is not None:
            self.pbar.n = chunk_index + 1
            self.pbar.refresh()

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ChunkProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
