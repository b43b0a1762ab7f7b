"""
Batch processor: runs intent extraction over modules in bounded concurrent batches.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from legacylens.core.constants import BATCH_FAILED_HINT, EXTRACTION_FAILED_HINT, JobStatus
from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import get_logger
from legacylens.domain.job import CodeModule
from legacylens.repositories.base import JobRepository
from legacylens.services.intent_extractor import IntentExtractor, failed_analysis

logger = get_logger(__name__)


@dataclass
class PartialFailure:
    """A module that was emitted with a sentinel result."""

    module_id: str
    hint: str
    reason: str


@dataclass
class BatchOutcome:
    """Analyzed modules in input order, plus the ones that degraded."""

    modules: list[CodeModule] = field(default_factory=list)
    failures: list[PartialFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


class BatchProcessor:
    """
    Drives modules through the intent extractor ``batch_size`` at a time.

    Calls within a batch run concurrently; the next batch starts only when
    the previous one has finished and the cooldown has elapsed. A failing
    module, or a failing batch, degrades to sentinel results and never
    aborts the run.
    """

    def __init__(
        self,
        extractor: IntentExtractor,
        job_repository: Optional[JobRepository] = None,
        batch_size: int = 5,
        cooldown_seconds: float = 1.0,
    ) -> None:
        """
        Initialize the processor.

        Args:
            extractor: Intent extractor used for each module
            job_repository: Store used to publish progress (optional)
            batch_size: Modules analyzed concurrently
            cooldown_seconds: Pause between consecutive batches
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.extractor = extractor
        self.job_repository = job_repository
        self.batch_size = batch_size
        self.cooldown_seconds = cooldown_seconds

    async def process(self, job_id: str, modules: list[CodeModule]) -> BatchOutcome:
        """
        Analyze every module and return them in input order.

        Args:
            job_id: Job whose progress counter is updated after each batch
            modules: Modules to analyze

        Returns:
            Outcome with one analyzed module per input module
        """
        outcome = BatchOutcome()
        batches = [
            modules[i : i + self.batch_size] for i in range(0, len(modules), self.batch_size)
        ]

        for number, batch in enumerate(batches, start=1):
            results = await self._run_batch(job_id, number, batch)

            for result in results:
                outcome.modules.append(result)
                for hint in (EXTRACTION_FAILED_HINT, BATCH_FAILED_HINT):
                    if hint in result.domain_hints and result.confidence == 0.0:
                        outcome.failures.append(
                            PartialFailure(result.module_id, hint, result.intent)
                        )
                        break

            await self._publish_progress(job_id, len(outcome.modules))

            logger.info(
                "Batch complete",
                job_id=job_id,
                batch=number,
                batches=len(batches),
                processed=len(outcome.modules),
                total=len(modules),
            )

            if number < len(batches) and self.cooldown_seconds > 0:
                await asyncio.sleep(self.cooldown_seconds)

        if outcome.failures:
            logger.warning(
                "Analysis completed with degraded modules",
                job_id=job_id,
                failed=outcome.failed_count,
                total=len(modules),
            )

        return outcome

    async def _run_batch(
        self, job_id: str, number: int, batch: list[CodeModule]
    ) -> list[CodeModule]:
        """
        Analyze one batch concurrently; results follow batch order.

        An error from one module's extraction degrades that module only.
        An error from running the batch itself degrades every module in it.
        """
        try:
            results = await asyncio.gather(
                *(self.extractor.extract(m) for m in batch), return_exceptions=True
            )
        except Exception as e:
            logger.error(
                "Batch failed, degrading all of its modules",
                job_id=job_id,
                batch=number,
                error=str(e),
            )
            return [failed_analysis(m, BATCH_FAILED_HINT, str(e) or type(e).__name__) for m in batch]

        analyzed: list[CodeModule] = []
        for module, result in zip(batch, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Module extraction raised",
                    job_id=job_id,
                    batch=number,
                    module_id=module.module_id,
                    error=str(result),
                )
                result = failed_analysis(
                    module, EXTRACTION_FAILED_HINT, str(result) or type(result).__name__
                )
            elif isinstance(result, BaseException):
                raise result
            analyzed.append(result)
        return analyzed

    async def _publish_progress(self, job_id: str, processed: int) -> None:
        """Persist the cumulative processed count."""
        if self.job_repository is None:
            return
        try:
            await self.job_repository.update(
                job_id, status=JobStatus.ANALYZING.value, processed_modules=processed
            )
        except LegacyLensError as e:
            logger.warning("Progress update failed", job_id=job_id, error=e.message)
