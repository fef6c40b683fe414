"""
Parallel text processing - split long text, transform each part concurrently,
and join the results back in order.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio
import logging

from ..text_splitter import HierarchicalTextSplitter
from ..utils.async_helpers import with_timeout

logger = logging.getLogger(__name__)

TextTransform = Callable[[str], Awaitable[str]]


class TextProcessingError(Exception):
    """Raised when at least one part's transform failed.

    ``index`` and ``__cause__`` refer to the lowest-indexed failing part;
    ``failures`` holds every ``(index, exception)`` pair in part order.
    """

    def __init__(self, index: int, failures: List[Tuple[int, BaseException]]):
        first_error = failures[0][1] if failures else None
        super().__init__(
            f"Text transform failed for {len(failures)} part(s); first failure at part {index}: {first_error}"
        )
        self.index = index
        self.failures = failures


@dataclass(frozen=True)
class ProcessingJob:
    text: str
    token_budget: int
    join_separator: str
    transform: TextTransform


class ParallelTextProcessor:
    """Run one transform per text part with a cap on concurrent calls."""

    def __init__(
        self,
        splitter: Optional[HierarchicalTextSplitter] = None,
        max_concurrency: int = 8,
        call_timeout_seconds: Optional[float] = None,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.splitter = splitter or HierarchicalTextSplitter()
        self.max_concurrency = max_concurrency
        self.call_timeout_seconds = call_timeout_seconds

    async def process(self, job: ProcessingJob) -> str:
        parts = self.splitter.split(job.text, job.token_budget)
        if not parts:
            return ""

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_part(part: str) -> str:
            async with semaphore:
                return await with_timeout(job.transform(part), self.call_timeout_seconds)

        logger.info(f"Processing {len(parts)} text parts (budget={job.token_budget} tokens)")
        # Siblings keep running after a failure; errors are inspected once all parts finish.
        results = await asyncio.gather(*(run_part(part) for part in parts), return_exceptions=True)

        failures = [
            (index, result)
            for index, result in enumerate(results)
            if isinstance(result, BaseException)
        ]
        if failures:
            index, first_error = failures[0]
            logger.error(
                "Text transform failed for part %s/%s: %s",
                index + 1,
                len(parts),
                first_error,
                extra={"event": "completion_failed", "part_index": index, "error": str(first_error)},
            )
            raise TextProcessingError(index, failures) from first_error

        return job.join_separator.join(results).strip()
