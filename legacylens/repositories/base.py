"""
Job store interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from legacylens.core.exceptions import ConcurrencyConflictError, JobNotFoundError
from legacylens.core.logging import get_logger
from legacylens.domain.job import Job

logger = get_logger(__name__)

JobMutation = Callable[[Job], Job]


class JobRepository(ABC):
    """
    Durable storage of one Job document per job ID.

    Writes are whole-document and versioned: ``save`` with an
    ``expected_version`` only succeeds if the stored document still carries
    that version, and every successful save increments it.
    """

    def __init__(self, max_update_attempts: int = 5) -> None:
        if max_update_attempts < 1:
            raise ValueError("max_update_attempts must be at least 1")
        self.max_update_attempts = max_update_attempts

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    @abstractmethod
    async def save(self, job: Job, expected_version: Optional[int] = None) -> Job:
        """
        Store a job document.

        Args:
            job: Job to store
            expected_version: Version the stored document must still have;
                None writes unconditionally

        Returns:
            The stored job with its new version

        Raises:
            ConcurrencyConflictError: The stored version differs
        """
        ...

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Delete a job by ID."""
        ...

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """List stored job IDs."""
        ...

    @abstractmethod
    async def exists(self, job_id: str) -> bool:
        """Check if a job exists."""
        ...

    async def mutate(self, job_id: str, fn: JobMutation) -> Job:
        """
        Read-modify-write a job, retrying when another writer got there first.

        ``fn`` receives the current job and returns the replacement. It may
        raise to abort without writing, and may run more than once.

        Raises:
            JobNotFoundError: No job with this ID
            ConcurrencyConflictError: Still conflicting after all attempts
        """
        attempt = 0
        while True:
            attempt += 1
            job = await self.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            try:
                return await self.save(fn(job), expected_version=job.version)
            except ConcurrencyConflictError:
                if attempt >= self.max_update_attempts:
                    logger.warning(
                        "Job update gave up after conflicts",
                        job_id=job_id,
                        attempts=attempt,
                    )
                    raise
                logger.debug("Job write conflict, retrying", job_id=job_id, attempt=attempt)

    async def update(self, job_id: str, status: Optional[str] = None, **fields: Any) -> Job:
        """
        Merge fields (and optionally a new status) into a stored job.

        Raises:
            JobNotFoundError: No job with this ID
        """

        def merge(job: Job) -> Job:
            data = job.model_dump()
            data.update(fields)
            if status is not None:
                data["status"] = status
            return Job.model_validate(data)

        return await self.mutate(job_id, merge)
