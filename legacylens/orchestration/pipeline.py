"""
Pipeline orchestrator: drives a job through ingest, analyze and roadmap.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from legacylens.chunking.chunker import SourceChunker
from legacylens.core.constants import JobStatus, PipelineStage
from legacylens.core.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    JobNotFoundError,
    LegacyLensError,
    ValidationError,
)
from legacylens.core.logging import LogContext, get_logger
from legacylens.domain.job import CodeModule, Job
from legacylens.indexing.service import IndexingService
from legacylens.orchestration.stage_queue import StageMessage, StageQueue
from legacylens.orchestration.state_machine import (
    STAGE_SPECS,
    StageSpec,
    StateMachine,
    create_job_state_machine,
)
from legacylens.repositories.base import JobRepository
from legacylens.services.batch_processor import BatchProcessor
from legacylens.services.ingestion import SourceFile
from legacylens.services.roadmap_ranker import RoadmapRanker, RoadmapSummary, summarize_roadmap

logger = get_logger(__name__)


class PipelineOrchestrator:
    """
    Job state machine driver.

    Every stage run follows the same contract: check the job's status
    against the stage precondition, claim the job by persisting the
    in-progress status (a versioned write, so only one claim wins), do the
    work, persist the output with the next status, and enqueue the next
    stage. A failure during the work moves the job to ``error``.
    """

    def __init__(
        self,
        job_repository: JobRepository,
        batch_processor: BatchProcessor,
        roadmap_ranker: RoadmapRanker,
        stage_queue: Optional[StageQueue] = None,
        indexing: Optional[IndexingService] = None,
        chunker: Optional[SourceChunker] = None,
        state_machine: Optional[StateMachine] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            job_repository: Job store
            batch_processor: Runs intent extraction for the analyze stage
            roadmap_ranker: Ranks modules for the roadmap stage
            stage_queue: Work queue for stage triggers; without one, stages
                only run when invoked directly
            indexing: Index fed with analyzed modules (optional)
            chunker: Source chunker used at ingestion
            state_machine: Job state machine
        """
        self.job_repository = job_repository
        self.batch_processor = batch_processor
        self.roadmap_ranker = roadmap_ranker
        self.stage_queue = stage_queue
        self.indexing = indexing
        self.chunker = chunker or SourceChunker()
        self.state_machine = state_machine or create_job_state_machine()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def ingest(
        self,
        files: list[SourceFile],
        repo_name: str = "unknown",
        job_id: Optional[str] = None,
    ) -> Job:
        """
        Chunk source files into a new job and queue its analysis.

        Raises:
            ValidationError: The files produced no modules
            StageDispatchError: The analyze stage could not be queued; the
                job is stored and can be analyzed on request
        """
        job_id = job_id or uuid.uuid4().hex

        modules: list[CodeModule] = []
        for source in files:
            modules.extend(
                self.chunker.chunk_file(job_id, source.path, source.content, source.language)
            )

        if not modules:
            raise ValidationError("No code modules found in the supplied files")

        job = await self.job_repository.save(
            Job(
                job_id=job_id,
                status=JobStatus.INGESTING,
                repo_name=repo_name,
                total_modules=len(modules),
                modules=modules,
            )
        )

        logger.info(
            "Job ingested",
            job_id=job_id,
            repo_name=repo_name,
            files=len(files),
            modules=len(modules),
        )

        self._dispatch(job_id, PipelineStage.ANALYZE)
        return job

    async def request_stage(self, job_id: str, stage: PipelineStage) -> Job:
        """
        Queue a stage after checking the job can run it.

        Raises:
            JobNotFoundError: Unknown job
            InvalidStateError: The job is not waiting for this stage
            StageDispatchError: The stage could not be queued
        """
        spec = STAGE_SPECS[PipelineStage(stage).value]
        job = await self.get_job(job_id)
        self._check_gate(job, spec)
        self._dispatch(job_id, spec.stage)
        return job

    async def handle_message(self, message: StageMessage) -> None:
        """Stage queue handler."""
        await self.run_stage(message.job_id, message.stage)

    async def run_stage(self, job_id: str, stage: PipelineStage) -> Job:
        """
        Run one stage for a job.

        Raises:
            JobNotFoundError: Unknown job
            InvalidStateError: The job is not waiting for this stage, or
                another run claimed it first (nothing is modified)
            LegacyLensError: The stage work failed (the job is now ``error``)
        """
        spec = STAGE_SPECS[PipelineStage(stage).value]

        with LogContext(job_id=job_id, stage=spec.stage.value):
            job = await self._claim(job_id, spec)
            logger.info("Stage started", modules=job.total_modules)

            try:
                if spec.stage == PipelineStage.ANALYZE:
                    output = await self._analyze(job)
                else:
                    output = await self._roadmap(job)
            except LegacyLensError as e:
                await self._fail(job_id, e.message)
                raise
            except Exception as e:
                await self._fail(job_id, f"Unexpected error: {e}")
                raise

            self._check_transition(job, spec.next_status)
            job = await self.job_repository.update(
                job_id,
                status=spec.next_status,
                active_stage=None,
                **output,
            )
            logger.info("Stage complete", status=job.status)

            if spec.next_stage is not None:
                self._dispatch(job_id, spec.next_stage)

        return job

    async def run_analysis(self, job_id: str) -> Job:
        """Run the analyze stage."""
        return await self.run_stage(job_id, PipelineStage.ANALYZE)

    async def run_roadmap(self, job_id: str) -> Job:
        """Run the roadmap stage."""
        return await self.run_stage(job_id, PipelineStage.ROADMAP)

    async def get_job(self, job_id: str) -> Job:
        """
        Get a job by ID.

        Raises:
            JobNotFoundError: Unknown job
        """
        job = await self.job_repository.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_roadmap_summary(self, job_id: str) -> RoadmapSummary:
        """
        Summarize a completed job's roadmap.

        Raises:
            JobNotFoundError: Unknown job
            InvalidStateError: The job is not complete
        """
        job = await self.get_job(job_id)
        if job.status != JobStatus.COMPLETE:
            raise InvalidStateError(job_id, job.status, [JobStatus.COMPLETE.value])
        return summarize_roadmap(job.roadmap, job.modules)

    # ------------------------------------------------------------------
    # Stage work
    # ------------------------------------------------------------------

    async def _analyze(self, job: Job) -> dict[str, Any]:
        outcome = await self.batch_processor.process(job.job_id, job.modules)
        await self._index_modules(outcome.modules)
        return {
            "modules": outcome.modules,
            "processed_modules": len(outcome.modules),
        }

    async def _roadmap(self, job: Job) -> dict[str, Any]:
        roadmap = await self.roadmap_ranker.rank(job.modules)
        return {"roadmap": roadmap}

    async def _index_modules(self, modules: list[CodeModule]) -> None:
        """Index analyzed modules; a module that fails to index is skipped."""
        if self.indexing is None:
            return

        skipped = 0
        for module in modules:
            try:
                await self.indexing.index(module)
            except LegacyLensError as e:
                skipped += 1
                logger.warning("Indexing failed", module_id=module.module_id, error=e.message)

        logger.debug("Modules indexed", indexed=len(modules) - skipped, skipped=skipped)

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _check_gate(self, job: Job, spec: StageSpec) -> None:
        if self.state_machine.is_final(job.status):
            raise InvalidStateError(
                job.job_id,
                job.status,
                [spec.required_status],
                message=f"Job '{job.job_id}' is {job.status} and can no longer advance",
            )
        if job.status != spec.required_status:
            raise InvalidStateError(job.job_id, job.status, [spec.required_status])
        if job.active_stage is not None:
            raise InvalidStateError(
                job.job_id,
                job.status,
                [spec.required_status],
                message=f"Job '{job.job_id}' is already running stage '{job.active_stage}'",
            )

    def _check_transition(self, job: Job, to_status: str) -> None:
        if not self.state_machine.can_transition(job.status, to_status):
            raise InvalidStateError(
                job.job_id,
                job.status,
                self.state_machine.get_next_states(job.status),
                message=f"Job '{job.job_id}' cannot move from {job.status} to {to_status}",
            )

    async def _claim(self, job_id: str, spec: StageSpec) -> Job:
        """Persist the in-progress status, conditional on the version just read."""
        job = await self.get_job(job_id)
        self._check_gate(job, spec)
        self._check_transition(job, spec.in_progress_status)

        claimed = Job.model_validate(
            {
                **job.model_dump(),
                "status": spec.in_progress_status,
                "active_stage": spec.stage.value,
                "error_message": None,
            }
        )
        try:
            return await self.job_repository.save(claimed, expected_version=job.version)
        except ConcurrencyConflictError as e:
            raise InvalidStateError(
                job_id,
                job.status,
                [spec.required_status],
                message=f"Job '{job_id}' was claimed by another {spec.stage.value} run",
            ) from e

    async def _fail(self, job_id: str, message: str) -> None:
        logger.error("Stage failed", error=message)
        try:
            await self.job_repository.update(
                job_id,
                status=JobStatus.ERROR.value,
                error_message=message,
                active_stage=None,
            )
        except LegacyLensError as e:
            logger.error("Could not record job failure", error=e.message)

    def _dispatch(self, job_id: str, stage: PipelineStage) -> None:
        if self.stage_queue is None:
            logger.info(
                "No stage queue configured, stage must be run directly",
                job_id=job_id,
                stage=stage.value,
            )
            return
        self.stage_queue.enqueue(job_id, stage)
