"""
Refactor service: guardrailed rewrite of a single module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from legacylens.core.constants import JobStatus
from legacylens.core.exceptions import (
    InvalidRequestError,
    InvalidStateError,
    JobNotFoundError,
    LegacyLensError,
    ModuleNotFoundError,
)
from legacylens.core.logging import LogContext, get_logger
from legacylens.domain.job import CodeModule, Job, RefactoredModule
from legacylens.inference import prompts
from legacylens.inference.gateway import InferenceGateway, strip_code_fences
from legacylens.indexing.service import IndexingService
from legacylens.repositories.base import JobRepository
from legacylens.services.intent_extractor import IntentExtractor, drift_warning
from legacylens.services.test_scaffolder import TestScaffolder

logger = get_logger(__name__)

REFACTORABLE_STATUSES = [JobStatus.ROADMAPPING.value, JobStatus.COMPLETE.value]


@dataclass
class RefactorResult:
    """A stored refactor plus what was used to produce it."""

    refactored_module: RefactoredModule
    related_modules_used: int

    @property
    def drift_warning(self) -> Optional[str]:
        return self.refactored_module.drift_warning


class RefactorService:
    """
    Rewrites one analyzed module in a target language, constrained to its
    extracted intent, and appends the result to the job.
    """

    def __init__(
        self,
        job_repository: JobRepository,
        gateway: InferenceGateway,
        extractor: IntentExtractor,
        scaffolder: TestScaffolder,
        indexing: Optional[IndexingService] = None,
        related_top_k: int = 3,
    ) -> None:
        self.job_repository = job_repository
        self.gateway = gateway
        self.extractor = extractor
        self.scaffolder = scaffolder
        self.indexing = indexing
        self.related_top_k = related_top_k

    async def refactor(self, job_id: str, module_id: str, target_language: str) -> RefactorResult:
        """
        Refactor ``module_id`` of ``job_id`` into ``target_language``.

        The job status is left unchanged.

        Raises:
            InvalidRequestError: A required argument is empty
            JobNotFoundError: Unknown job
            InvalidStateError: The job has not been analyzed yet
            ModuleNotFoundError: Unknown module
            UpstreamError: The rewrite call failed
        """
        for name, value in (
            ("job_id", job_id),
            ("module_id", module_id),
            ("target_language", target_language),
        ):
            if not value or not value.strip():
                raise InvalidRequestError(f"{name} is required", field=name)

        job = await self.job_repository.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status not in REFACTORABLE_STATUSES:
            raise InvalidStateError(job_id, job.status, REFACTORABLE_STATUSES)

        module = job.find_module(module_id)
        if module is None:
            raise ModuleNotFoundError(job_id, module_id)

        with LogContext(job_id=job_id, module_id=module_id):
            logger.info("Refactoring module", target_language=target_language)

            related = await self._related_modules(module_id)
            refactored_code = await self._rewrite(module, target_language, related)

            drift = await self.extractor.check_semantic_drift(module.intent, refactored_code)
            test_scaffold = await self.scaffolder.generate(
                module_id,
                module.intent,
                refactored_code,
                target_language,
                function_name=module.function_name,
            )

            refactored = RefactoredModule(
                module_id=module_id,
                original_code=module.raw_code,
                refactored_code=refactored_code,
                target_language=target_language,
                test_scaffold=test_scaffold,
                intent_used_as_guardrail=module.intent,
                guardrail_mode=True,
                drift_warning=drift_warning(drift),
            )

            def append(current: Job) -> Job:
                return current.model_copy(
                    update={"refactored_modules": [*current.refactored_modules, refactored]}
                )

            await self.job_repository.mutate(job_id, append)

            logger.info(
                "Module refactored",
                drifted=drift.drifted,
                related_modules=len(related),
            )

        return RefactorResult(refactored_module=refactored, related_modules_used=len(related))

    async def _related_modules(self, module_id: str) -> list[CodeModule]:
        """Related modules for prompt context; empty when the index is unavailable."""
        if self.indexing is None or self.related_top_k == 0:
            return []
        try:
            return await self.indexing.search_related(module_id, self.related_top_k)
        except LegacyLensError as e:
            logger.debug("Related lookup failed", module_id=module_id, error=e.message)
            return []

    async def _rewrite(
        self, module: CodeModule, target_language: str, related: list[CodeModule]
    ) -> str:
        related_context = (
            "\n".join(f"- {r.function_name or r.module_id}: {r.intent}" for r in related)
            or "(none)"
        )
        text = await self.gateway.complete(
            prompts.REFACTOR_SYSTEM_PROMPT.format(
                target_language=target_language,
                intent=module.intent or "(intent unavailable)",
            ),
            prompts.REFACTOR_USER_TEMPLATE.format(
                language=module.language,
                raw_code=module.raw_code,
                related_context=related_context,
            ),
        )
        return strip_code_fences(text)
