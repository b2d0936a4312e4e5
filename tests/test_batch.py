"""Tests for concurrent batch processing."""

import asyncio

import pytest

from app.extractor.exceptions import ExtractionFailure, InputError
from app.extractor.services.batch import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    CancellationToken,
    iter_batch,
    run_batch,
)


async def _rows_for(source_file: str, payload: str) -> list[dict]:
    return [{"source_file": source_file, "value": payload}]


class TestRunBatch:
    """Tests for run_batch."""

    @pytest.mark.asyncio
    async def test_rows_in_document_order(self):
        """Test that rows follow document order, not completion order."""

        async def process(source_file: str, delay: float) -> list[dict]:
            await asyncio.sleep(delay)
            return [{"source_file": source_file}]

        outcome = await run_batch(
            [("slow.pdf", 0.05), ("fast.pdf", 0.0), ("medium.pdf", 0.02)],
            process,
            max_workers=3,
        )

        assert [r["source_file"] for r in outcome.rows] == ["slow.pdf", "fast.pdf", "medium.pdf"]
        assert outcome.successful == 3
        assert outcome.failures == []

    @pytest.mark.asyncio
    async def test_failure_isolated(self):
        """Test that one failing document does not affect the others."""

        async def process(source_file: str, payload: str) -> list[dict]:
            if payload == "bad":
                raise ExtractionFailure("Failed to process text with AI", detail="upstream 500")
            return await _rows_for(source_file, payload)

        outcome = await run_batch(
            [("a.pdf", "ok"), ("b.pdf", "bad"), ("c.pdf", "ok")],
            process,
        )

        assert [r["source_file"] for r in outcome.rows] == ["a.pdf", "c.pdf"]
        assert len(outcome.failures) == 1
        failure = outcome.failures[0]
        assert failure.source_file == "b.pdf"
        assert failure.message == "Failed to process text with AI"
        assert failure.detail == "upstream 500"

    @pytest.mark.asyncio
    async def test_input_error_reported(self):
        """Test that rejected input is reported as a failure."""

        async def process(source_file: str, payload: str) -> list[dict]:
            raise InputError("Invalid text content")

        outcome = await run_batch([("a.pdf", "")], process)

        assert outcome.rows == []
        assert outcome.failures[0].message == "Invalid text content"

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated(self):
        """Test that unexpected exceptions are contained per document."""

        async def process(source_file: str, payload: str) -> list[dict]:
            if source_file == "boom.pdf":
                raise RuntimeError("kaboom")
            return await _rows_for(source_file, payload)

        outcome = await run_batch([("boom.pdf", "x"), ("fine.pdf", "y")], process)

        assert [r["source_file"] for r in outcome.rows] == ["fine.pdf"]
        assert outcome.failures[0].detail == "kaboom"


class TestConcurrency:
    """Tests for bounded concurrency and cancellation."""

    @pytest.mark.asyncio
    async def test_bounded_workers(self):
        """Test that no more than max_workers documents run at once."""
        running = 0
        peak = 0

        async def process(source_file: str, payload: int) -> list[dict]:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return []

        await run_batch([(f"{i}.pdf", i) for i in range(10)], process, max_workers=3)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_outcomes_stream_in_completion_order(self):
        """Test that iter_batch yields each outcome as it finishes."""

        async def process(source_file: str, delay: float) -> str:
            await asyncio.sleep(delay)
            return source_file

        seen = [
            outcome.result
            async for outcome in iter_batch([("slow", 0.05), ("fast", 0.0)], process, max_workers=2)
        ]

        assert seen == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_cancellation_skips_pending_documents(self):
        """Test that documents not yet started are reported as cancelled."""
        token = CancellationToken()
        started: list[str] = []

        async def process(source_file: str, payload: None) -> list[dict]:
            started.append(source_file)
            token.cancel()
            await asyncio.sleep(0.01)
            return [{"source_file": source_file}]

        statuses = {}
        async for outcome in iter_batch(
            [("a.pdf", None), ("b.pdf", None), ("c.pdf", None)],
            process,
            max_workers=1,
            cancel_token=token,
        ):
            statuses[outcome.source_file] = outcome.status

        assert started == ["a.pdf"]
        assert statuses == {
            "a.pdf": STATUS_COMPLETED,
            "b.pdf": STATUS_CANCELLED,
            "c.pdf": STATUS_CANCELLED,
        }

    @pytest.mark.asyncio
    async def test_cancelled_documents_counted(self):
        """Test that run_batch reports cancelled documents as failures."""
        token = CancellationToken()
        token.cancel()

        outcome = await run_batch([("a.pdf", "x")], _rows_for, cancel_token=token)

        assert outcome.cancelled == 1
        assert outcome.rows == []
        assert outcome.failures[0].message == "Cancelled"

    @pytest.mark.asyncio
    async def test_failed_status(self):
        """Test the status of a failed outcome."""

        async def process(source_file: str, payload: None):
            raise ExtractionFailure("nope")

        [outcome] = [o async for o in iter_batch([("a.pdf", None)], process)]
        assert outcome.status == STATUS_FAILED
        assert not outcome.ok

    @pytest.mark.asyncio
    async def test_invalid_worker_count(self):
        """Test that at least one worker is required."""
        with pytest.raises(ValueError):
            async for _ in iter_batch([("a.pdf", None)], _rows_for, max_workers=0):
                pass
