"""
Unit tests for intent extraction and the batch processor.
"""

import asyncio
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from factories import StubGateway, make_module
from legacylens.core.constants import BATCH_FAILED_HINT, EXTRACTION_FAILED_HINT, JobStatus
from legacylens.domain.job import CodeModule, Job
from legacylens.repositories.job_repo import InMemoryJobRepository
from legacylens.services import batch_processor as batch_processor_module
from legacylens.services.batch_processor import BatchProcessor
from legacylens.services.intent_extractor import IntentExtractor


class RecordingRepository(InMemoryJobRepository):
    """Job store that records every processed_modules update."""

    def __init__(self) -> None:
        super().__init__()
        self.progress: list[int] = []

    async def update(self, job_id: str, status: Optional[str] = None, **fields: Any) -> Job:
        job = await super().update(job_id, status=status, **fields)
        self.progress.append(job.processed_modules)
        return job


def _processor(gateway: StubGateway, repository=None, batch_size: int = 5) -> BatchProcessor:
    return BatchProcessor(
        IntentExtractor(gateway),
        job_repository=repository,
        batch_size=batch_size,
        cooldown_seconds=0,
    )


class TestIntentExtractor:
    """Tests for IntentExtractor."""

    @pytest.mark.asyncio
    async def test_extract_fills_analysis(self, stub_gateway: StubGateway) -> None:
        """A successful call fills every analysis field."""
        module = make_module(0)

        result = await IntentExtractor(stub_gateway).extract(module)

        assert result.intent == "Calculates gross pay for hourly employees"
        assert result.confidence == 0.9
        assert result.requires_human_review is False
        assert result.domain_hints == ["payroll"]
        assert result.raw_code == module.raw_code
        assert module.intent == ""

    @pytest.mark.asyncio
    async def test_low_confidence_requires_review(self) -> None:
        """Confidence under the threshold forces human review."""
        gateway = StubGateway(
            intent={
                "intent": "Probably formats dates",
                "confidence": 0.4,
                "requiresHumanReview": False,
                "domainHints": [],
            }
        )

        result = await IntentExtractor(gateway, review_threshold=0.65).extract(make_module(0))

        assert result.requires_human_review is True

    @pytest.mark.asyncio
    async def test_threshold_is_configurable(self) -> None:
        """The review threshold is a parameter."""
        gateway = StubGateway(
            intent={
                "intent": "Formats dates",
                "confidence": 0.5,
                "requiresHumanReview": False,
                "domainHints": [],
            }
        )

        result = await IntentExtractor(gateway, review_threshold=0.3).extract(make_module(0))

        assert result.requires_human_review is False

    @pytest.mark.asyncio
    async def test_failure_returns_sentinel(self) -> None:
        """An upstream failure yields the extraction-failed sentinel."""
        gateway = StubGateway(fail_on=("payload_0",))

        result = await IntentExtractor(gateway).extract(make_module(0))

        assert result.confidence == 0.0
        assert result.requires_human_review is True
        assert result.domain_hints == [EXTRACTION_FAILED_HINT]
        assert result.intent.startswith("Intent extraction failed")

    @pytest.mark.asyncio
    async def test_wrong_shape_returns_sentinel(self) -> None:
        """A response of the wrong shape also yields the sentinel."""
        gateway = StubGateway(intent={"summary": "no intent field"})

        result = await IntentExtractor(gateway).extract(make_module(0))

        assert result.domain_hints == [EXTRACTION_FAILED_HINT]

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_sentinel(self) -> None:
        """Errors outside the service hierarchy also yield the sentinel."""
        gateway = StubGateway()
        gateway.complete = AsyncMock(side_effect=KeyError("content"))

        result = await IntentExtractor(gateway).extract(make_module(0))

        assert result.confidence == 0.0
        assert result.domain_hints == [EXTRACTION_FAILED_HINT]
        assert "content" in result.intent


class TestBatchProcessor:
    """Tests for BatchProcessor."""

    @pytest.mark.asyncio
    async def test_partial_failure(self, sample_modules: list[CodeModule]) -> None:
        """Seven modules, batch size five, third module fails."""
        gateway = StubGateway(fail_on=("payload_2",))

        outcome = await _processor(gateway).process("job1", sample_modules)

        assert len(outcome.modules) == 7
        assert [m.module_id for m in outcome.modules] == [m.module_id for m in sample_modules]

        failed = outcome.modules[2]
        assert failed.confidence == 0.0
        assert failed.requires_human_review is True
        assert EXTRACTION_FAILED_HINT in failed.domain_hints

        for index, module in enumerate(outcome.modules):
            if index == 2:
                continue
            assert module.intent == "Calculates gross pay for hourly employees"
            assert module.confidence == 0.9
            assert module.requires_human_review is False

        assert [f.module_id for f in outcome.failures] == [sample_modules[2].module_id]
        assert outcome.failed_count == 1

    @pytest.mark.asyncio
    async def test_progress_is_published_per_batch(self, sample_modules: list[CodeModule]) -> None:
        """processedModules grows monotonically and never exceeds the total."""
        repository = RecordingRepository()
        await repository.save(
            Job(
                job_id="job1",
                status=JobStatus.ANALYZING,
                total_modules=len(sample_modules),
                modules=sample_modules,
            )
        )

        await _processor(StubGateway(), repository).process("job1", sample_modules)

        assert repository.progress == [5, 7]
        assert repository.progress == sorted(repository.progress)
        stored = await repository.get("job1")
        assert stored.processed_modules == 7
        assert stored.status == JobStatus.ANALYZING

    @pytest.mark.asyncio
    async def test_progress_failure_does_not_abort(self, sample_modules: list[CodeModule]) -> None:
        """A job store error while publishing progress is tolerated."""
        repository = InMemoryJobRepository()

        outcome = await _processor(StubGateway(), repository).process("missing", sample_modules)

        assert len(outcome.modules) == 7

    @pytest.mark.asyncio
    async def test_unexpected_module_error_degrades_that_module_only(
        self, sample_modules: list[CodeModule]
    ) -> None:
        """An unexpected error from one module leaves its batch-mates analyzed."""
        extractor = AsyncMock(spec=IntentExtractor)

        async def extract(module: CodeModule) -> CodeModule:
            if module.module_id == sample_modules[1].module_id:
                raise AttributeError("'list' object has no attribute 'get'")
            return module.model_copy(update={"intent": "ok", "confidence": 0.8})

        extractor.extract.side_effect = extract
        processor = BatchProcessor(extractor, batch_size=5, cooldown_seconds=0)

        outcome = await processor.process("job1", sample_modules)

        assert len(outcome.modules) == 7
        failed = outcome.modules[1]
        assert failed.domain_hints == [EXTRACTION_FAILED_HINT]
        assert failed.confidence == 0.0
        assert failed.requires_human_review is True
        assert "has no attribute" in failed.intent
        assert [m.intent for i, m in enumerate(outcome.modules) if i != 1] == ["ok"] * 6
        assert [f.module_id for f in outcome.failures] == [sample_modules[1].module_id]

    @pytest.mark.asyncio
    async def test_batch_level_failure_degrades_whole_batch(
        self, sample_modules: list[CodeModule], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failure running the batch itself degrades every module in it."""

        async def broken_gather(*aws: Any, **kwargs: Any) -> list[Any]:
            for aw in aws:
                aw.close()
            raise RuntimeError("event loop is shutting down")

        monkeypatch.setattr(
            batch_processor_module,
            "asyncio",
            SimpleNamespace(gather=broken_gather, sleep=asyncio.sleep),
        )

        outcome = await _processor(StubGateway()).process("job1", sample_modules)

        assert len(outcome.modules) == 7
        for module in outcome.modules:
            assert module.domain_hints == [BATCH_FAILED_HINT]
            assert module.confidence == 0.0
            assert module.requires_human_review is True
            assert module.intent.endswith("event loop is shutting down")
        assert outcome.failed_count == 7

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_batch_size(self, sample_modules: list[CodeModule]) -> None:
        """No more than batch_size calls are in flight at once."""
        in_flight = 0
        peak = 0
        extractor = AsyncMock(spec=IntentExtractor)

        async def extract(module: CodeModule) -> CodeModule:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return module

        extractor.extract.side_effect = extract
        processor = BatchProcessor(extractor, batch_size=3, cooldown_seconds=0)

        await processor.process("job1", sample_modules)

        assert peak == 3
        assert extractor.extract.await_count == 7

    @pytest.mark.asyncio
    async def test_cooldown_between_batches_only(
        self, sample_modules: list[CodeModule], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The cooldown runs between batches, not after the last one."""
        sleep = AsyncMock()
        monkeypatch.setattr(batch_processor_module.asyncio, "sleep", sleep)
        processor = BatchProcessor(IntentExtractor(StubGateway()), batch_size=3, cooldown_seconds=1.5)

        await processor.process("job1", sample_modules)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        """No modules means no calls and an empty outcome."""
        gateway = StubGateway()

        outcome = await _processor(gateway).process("job1", [])

        assert outcome.modules == []
        assert gateway.calls == []

    def test_invalid_batch_size(self) -> None:
        """Batch size must be positive."""
        with pytest.raises(ValueError):
            BatchProcessor(IntentExtractor(StubGateway()), batch_size=0)
