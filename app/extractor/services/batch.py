"""
Concurrent batch processing of documents.

Documents are processed by a bounded pool of asyncio tasks. Each outcome is
delivered on a result queue as soon as its document finishes, so callers can
report progress while the rest of the batch is still running. A failure in
one document never affects its siblings.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ..exceptions import PipelineError
from ..models import BatchFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 5

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


class CancellationToken:
    """Cooperative cancellation signal shared by the tasks of one batch."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class DocumentOutcome(Generic[T]):
    """Result of processing one document of a batch."""

    index: int
    source_file: str
    status: str
    result: T | None = None
    error: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_COMPLETED

    def to_failure(self) -> BatchFailure:
        return BatchFailure(
            source_file=self.source_file,
            message=self.error or self.status,
            detail=self.detail,
        )


@dataclass
class BatchOutcome:
    """Collected outcomes of a batch, in document order."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    outcomes: list[DocumentOutcome] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.status == STATUS_COMPLETED)

    @property
    def cancelled(self) -> int:
        return sum(1 for o in self.outcomes if o.status == STATUS_CANCELLED)


async def iter_batch(
    documents: Sequence[tuple[str, Any]],
    process: Callable[[str, Any], Awaitable[T]],
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[DocumentOutcome[T]]:
    """
    Process documents concurrently and yield outcomes in completion order.

    Args:
        documents: (source_file, payload) pairs.
        process: Coroutine function run for each document.
        max_workers: Maximum number of documents processed at once.
        cancel_token: Checked before each document starts.

    Yields:
        One DocumentOutcome per document.
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    semaphore = asyncio.Semaphore(max_workers)
    results: asyncio.Queue[DocumentOutcome[T]] = asyncio.Queue()

    async def run_one(index: int, source_file: str, payload: Any) -> None:
        async with semaphore:
            if cancel_token is not None and cancel_token.cancelled:
                await results.put(
                    DocumentOutcome(index, source_file, STATUS_CANCELLED, error="Cancelled")
                )
                return
            try:
                value = await process(source_file, payload)
            except PipelineError as e:
                logger.warning("Processing failed for %s: %s", source_file, e.message)
                outcome = DocumentOutcome(
                    index, source_file, STATUS_FAILED, error=e.message, detail=e.detail
                )
            except Exception as e:
                logger.exception("Unexpected error processing %s", source_file)
                outcome = DocumentOutcome(
                    index, source_file, STATUS_FAILED, error="Unexpected processing error", detail=str(e)
                )
            else:
                outcome = DocumentOutcome(index, source_file, STATUS_COMPLETED, result=value)
            await results.put(outcome)

    tasks = [
        asyncio.create_task(run_one(i, source_file, payload))
        for i, (source_file, payload) in enumerate(documents)
    ]
    logger.info(
        "Processing %d document(s), max %d concurrent",
        len(tasks),
        max_workers,
    )

    try:
        for _ in range(len(tasks)):
            yield await results.get()
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_batch(
    documents: Sequence[tuple[str, Any]],
    process: Callable[[str, Any], Awaitable[list[dict[str, Any]]]],
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel_token: CancellationToken | None = None,
) -> BatchOutcome:
    """
    Process a batch whose per-document result is a list of rows.

    Rows of successful documents are concatenated in document order,
    regardless of completion order.
    """
    outcomes: list[DocumentOutcome] = []
    async for outcome in iter_batch(documents, process, max_workers, cancel_token):
        outcomes.append(outcome)
    outcomes.sort(key=lambda o: o.index)

    batch = BatchOutcome(outcomes=outcomes)
    for outcome in outcomes:
        if outcome.ok:
            batch.rows.extend(outcome.result or [])
        else:
            batch.failures.append(outcome.to_failure())

    logger.info(
        "Batch finished: %d successful, %d failed, %d cancelled",
        batch.successful,
        len(outcomes) - batch.successful - batch.cancelled,
        batch.cancelled,
    )
    return batch
