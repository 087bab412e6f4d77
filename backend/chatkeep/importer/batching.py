"""Batch scheduler: bounded concurrent fan-out with inter-batch pacing."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100
DEFAULT_PAUSE_SECONDS = 0.01


class BatchScheduler:
    """Processes items in fixed-size batches.

    All items of one batch run concurrently; the next batch starts only after
    the whole batch has settled and an optional pause has elapsed. The
    processor is expected to handle its own per-item errors.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pause_seconds: float = DEFAULT_PAUSE_SECONDS,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if pause_seconds < 0:
            raise ValueError(f"pause_seconds must be >= 0, got {pause_seconds}")
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds

    def batches(self, items: Sequence[T]) -> list[Sequence[T]]:
        return [
            items[start:start + self.batch_size]
            for start in range(0, len(items), self.batch_size)
        ]

    async def run(
        self,
        items: Sequence[T],
        processor: Callable[[T], Awaitable[None]],
    ) -> None:
        batches = self.batches(items)
        for i, batch in enumerate(batches):
            await asyncio.gather(*(processor(item) for item in batch))
            if self.pause_seconds and i < len(batches) - 1:
                await asyncio.sleep(self.pause_seconds)
