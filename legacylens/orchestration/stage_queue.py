"""
Stage work queue: delivers "run stage X for job Y" messages to a worker pool.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from legacylens.core.constants import PipelineStage
from legacylens.core.exceptions import StageDispatchError
from legacylens.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageMessage:
    """Request to run one pipeline stage for one job."""

    job_id: str
    stage: PipelineStage


StageHandler = Callable[[StageMessage], Awaitable[None]]


class StageQueue:
    """
    In-process asyncio work queue with a fixed pool of workers.

    Enqueueing never blocks: a stopped or full queue raises
    ``StageDispatchError``. Workers log handler failures and keep consuming.
    """

    def __init__(
        self,
        handler: Optional[StageHandler] = None,
        worker_count: int = 2,
        maxsize: int = 100,
    ) -> None:
        """
        Initialize the queue.

        Args:
            handler: Coroutine run for each message
            worker_count: Number of concurrent workers
            maxsize: Queue capacity (0 = unbounded)
        """
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self._handler = handler
        self.worker_count = worker_count
        self.maxsize = maxsize
        self._queue: Optional[asyncio.Queue[StageMessage]] = None
        self._workers: list[asyncio.Task] = []

    def set_handler(self, handler: StageHandler) -> None:
        """Set the coroutine run for each message."""
        self._handler = handler

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Messages waiting for a worker."""
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Create the queue and spawn the workers."""
        if self.is_running:
            return
        handler = self._handler
        if handler is None:
            raise RuntimeError("StageQueue has no handler")

        queue: asyncio.Queue[StageMessage] = asyncio.Queue(maxsize=self.maxsize)
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker(n, queue, handler), name=f"stage-worker-{n}")
            for n in range(self.worker_count)
        ]
        logger.info("Stage queue started", workers=self.worker_count, maxsize=self.maxsize)

    async def stop(self, drain: bool = False) -> None:
        """
        Stop the workers.

        Args:
            drain: Wait for queued messages to be handled first
        """
        if not self.is_running:
            return
        if drain and self._queue is not None:
            await self._queue.join()

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        dropped = self.pending
        self._queue = None
        logger.info("Stage queue stopped", dropped_messages=dropped)

    def enqueue(self, job_id: str, stage: PipelineStage) -> StageMessage:
        """
        Queue a stage for a job.

        Raises:
            StageDispatchError: The queue is not running or is full
        """
        stage_value = PipelineStage(stage)
        if not self.is_running or self._queue is None:
            raise StageDispatchError(job_id, stage_value.value, "stage queue is not running")

        message = StageMessage(job_id=job_id, stage=stage_value)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull as e:
            raise StageDispatchError(job_id, stage_value.value, "stage queue is full") from e

        logger.debug("Stage enqueued", job_id=job_id, stage=stage_value.value)
        return message

    async def join(self) -> None:
        """Wait until every queued message, including follow-up stages, is handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(
        self, number: int, queue: asyncio.Queue[StageMessage], handler: StageHandler
    ) -> None:
        while True:
            message = await queue.get()
            try:
                await handler(message)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Stage handler failed",
                    worker=number,
                    job_id=message.job_id,
                    stage=message.stage.value,
                )
            finally:
                queue.task_done()
