"""
Job store implementations.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional

from redis.exceptions import RedisError, WatchError

from legacylens.core.constants import JOB_KEY
from legacylens.core.exceptions import ConcurrencyConflictError, JobStoreError
from legacylens.core.logging import get_logger
from legacylens.domain.job import Job
from legacylens.repositories.base import JobRepository

logger = get_logger(__name__)


def _stamp(job: Job, version: int) -> Job:
    return job.model_copy(update={"version": version, "updated_at": datetime.utcnow()})


class InMemoryJobRepository(JobRepository):
    """
    In-memory job store for development/testing.

    Documents are stored serialized so callers never share mutable state
    with the store.
    """

    def __init__(self, max_update_attempts: int = 5) -> None:
        super().__init__(max_update_attempts=max_update_attempts)
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, job_id: str) -> Optional[Job]:
        document = self._documents.get(job_id)
        if document is None:
            return None
        return Job.model_validate(document)

    async def save(self, job: Job, expected_version: Optional[int] = None) -> Job:
        async with self._lock:
            current = self._documents.get(job.job_id)
            current_version = current["version"] if current else None

            if expected_version is not None and current_version != expected_version:
                raise ConcurrencyConflictError(job.job_id, expected_version, current_version)

            stored = _stamp(job, (current_version if current_version is not None else job.version) + 1)
            self._documents[job.job_id] = stored.to_document()

        logger.debug("Job saved", job_id=job.job_id, status=stored.status, version=stored.version)
        return stored

    async def delete(self, job_id: str) -> bool:
        async with self._lock:
            return self._documents.pop(job_id, None) is not None

    async def list_ids(self) -> list[str]:
        return list(self._documents)

    async def exists(self, job_id: str) -> bool:
        return job_id in self._documents


class RedisJobRepository(JobRepository):
    """
    Redis job store for production.

    Each job is a JSON document; versioned saves use WATCH/MULTI so a
    concurrent write between the version check and the SET aborts the
    transaction.
    """

    def __init__(
        self,
        redis_client: Any,
        key_prefix: str = "legacylens:",
        max_update_attempts: int = 5,
    ) -> None:
        """
        Initialize with a Redis client.

        Args:
            redis_client: redis.asyncio client
            key_prefix: Prefix for all job keys
            max_update_attempts: Conflict retries for update/mutate
        """
        super().__init__(max_update_attempts=max_update_attempts)
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _make_key(self, job_id: str) -> str:
        """Create a prefixed key."""
        return f"{self.key_prefix}{JOB_KEY.format(job_id=job_id)}"

    async def get(self, job_id: str) -> Optional[Job]:
        try:
            raw = await self.redis.get(self._make_key(job_id))
        except RedisError as e:
            raise JobStoreError(f"Failed to read job '{job_id}': {e}") from e

        if raw is None:
            return None
        return Job.model_validate_json(raw)

    async def save(self, job: Job, expected_version: Optional[int] = None) -> Job:
        key = self._make_key(job.job_id)

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                current_version = json.loads(raw)["version"] if raw is not None else None

                if expected_version is not None and current_version != expected_version:
                    await pipe.unwatch()
                    raise ConcurrencyConflictError(job.job_id, expected_version, current_version)

                stored = _stamp(
                    job, (current_version if current_version is not None else job.version) + 1
                )
                pipe.multi()
                pipe.set(key, json.dumps(stored.to_document()))
                await pipe.execute()
        except WatchError as e:
            raise ConcurrencyConflictError(
                job.job_id, expected_version if expected_version is not None else -1, None
            ) from e
        except RedisError as e:
            raise JobStoreError(f"Failed to save job '{job.job_id}': {e}") from e

        logger.debug("Job saved", job_id=job.job_id, status=stored.status, version=stored.version)
        return stored

    async def delete(self, job_id: str) -> bool:
        try:
            result = await self.redis.delete(self._make_key(job_id))
        except RedisError as e:
            raise JobStoreError(f"Failed to delete job '{job_id}': {e}") from e
        return result > 0

    async def list_ids(self) -> list[str]:
        prefix = self._make_key("")
        ids = []
        try:
            async for key in self.redis.scan_iter(match=f"{prefix}*"):
                if isinstance(key, bytes):
                    key = key.decode()
                ids.append(key[len(prefix):])
        except RedisError as e:
            raise JobStoreError(f"Failed to list jobs: {e}") from e
        return ids

    async def exists(self, job_id: str) -> bool:
        try:
            return await self.redis.exists(self._make_key(job_id)) > 0
        except RedisError as e:
            raise JobStoreError(f"Failed to check job '{job_id}': {e}") from e
