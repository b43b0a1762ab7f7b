"""
API dependencies for dependency injection.
"""

from typing import Any, Optional

import redis.asyncio as redis

from legacylens.chunking.chunker import SourceChunker
from legacylens.core.config import Settings, settings
from legacylens.core.logging import get_logger
from legacylens.indexing.service import IndexingService, InMemoryIndex
from legacylens.inference.gateway import InferenceGateway
from legacylens.inference.openai_gateway import OpenAIChatGateway
from legacylens.orchestration.pipeline import PipelineOrchestrator
from legacylens.orchestration.stage_queue import StageQueue
from legacylens.repositories.base import JobRepository
from legacylens.repositories.job_repo import InMemoryJobRepository, RedisJobRepository
from legacylens.services.batch_processor import BatchProcessor
from legacylens.services.ingestion import GitHubSource
from legacylens.services.intent_extractor import IntentExtractor
from legacylens.services.refactor_service import RefactorService
from legacylens.services.roadmap_ranker import RoadmapRanker
from legacylens.services.test_scaffolder import TestScaffolder

logger = get_logger(__name__)


class ServiceContainer:
    """
    Container for all application services.
    Provides singleton instances of services.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(
        self,
        config: Optional[Settings] = None,
        gateway: Optional[InferenceGateway] = None,
        job_repository: Optional[JobRepository] = None,
        indexing: Optional[IndexingService] = None,
        github_source: Optional[GitHubSource] = None,
    ) -> None:
        """
        Initialize the container.

        Args:
            config: Application settings (defaults to the loaded settings)
            gateway: Inference gateway override
            job_repository: Job store override
            indexing: Index override
            github_source: GitHub source override
        """
        self.config = config or settings
        self._gateway_override = gateway
        self._job_repository_override = job_repository
        self._indexing_override = indexing
        self._github_source_override = github_source
        self._redis: Optional[Any] = None
        self._initialized = False

    @classmethod
    def get_instance(cls) -> "ServiceContainer":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def initialize(self) -> None:
        """Initialize all services."""
        if self._initialized:
            return

        pipeline = self.config.pipeline

        # Collaborators
        self._gateway = self._gateway_override or OpenAIChatGateway(self.config.inference)
        self._job_repository = self._job_repository_override or self._create_job_repository()
        self._indexing = self._indexing_override or InMemoryIndex()
        self._github_source = self._github_source_override or GitHubSource(self.config.github)

        # Services
        self._extractor = IntentExtractor(
            self._gateway,
            review_threshold=pipeline.human_review_threshold,
        )
        self._batch_processor = BatchProcessor(
            self._extractor,
            job_repository=self._job_repository,
            batch_size=pipeline.batch_size,
            cooldown_seconds=pipeline.batch_cooldown_seconds,
        )
        self._roadmap_ranker = RoadmapRanker(
            self._gateway,
            indexing=self._indexing,
            related_top_k=pipeline.related_top_k,
        )
        self._refactor_service = RefactorService(
            job_repository=self._job_repository,
            gateway=self._gateway,
            extractor=self._extractor,
            scaffolder=TestScaffolder(self._gateway),
            indexing=self._indexing,
            related_top_k=pipeline.related_top_k,
        )

        # Pipeline
        self._stage_queue = StageQueue(
            worker_count=pipeline.worker_count,
            maxsize=pipeline.queue_maxsize,
        )
        self._orchestrator = PipelineOrchestrator(
            job_repository=self._job_repository,
            batch_processor=self._batch_processor,
            roadmap_ranker=self._roadmap_ranker,
            stage_queue=self._stage_queue,
            indexing=self._indexing,
            chunker=SourceChunker.from_settings(self.config.chunker),
        )
        self._stage_queue.set_handler(self._orchestrator.handle_message)

        self._initialized = True

    def _create_job_repository(self) -> JobRepository:
        store = self.config.job_store
        if store.backend == "redis":
            self._redis = redis.from_url(store.redis_url)
            logger.info("Using Redis job store", key_prefix=store.key_prefix)
            return RedisJobRepository(
                self._redis,
                key_prefix=store.key_prefix,
                max_update_attempts=store.max_update_attempts,
            )
        return InMemoryJobRepository(max_update_attempts=store.max_update_attempts)

    async def start(self) -> None:
        """Start background workers."""
        self.initialize()
        await self._stage_queue.start()

    async def shutdown(self) -> None:
        """Stop workers and release clients."""
        if not self._initialized:
            return
        await self._stage_queue.stop()
        await self._gateway.close()
        await self._github_source.close()
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @property
    def orchestrator(self) -> PipelineOrchestrator:
        """Get the pipeline orchestrator."""
        self.initialize()
        return self._orchestrator

    @property
    def refactor_service(self) -> RefactorService:
        """Get the refactor service."""
        self.initialize()
        return self._refactor_service

    @property
    def github_source(self) -> GitHubSource:
        """Get the GitHub ingestion source."""
        self.initialize()
        return self._github_source

    @property
    def job_repository(self) -> JobRepository:
        """Get the job repository."""
        self.initialize()
        return self._job_repository

    @property
    def stage_queue(self) -> StageQueue:
        """Get the stage queue."""
        self.initialize()
        return self._stage_queue


# Singleton container instance
container = ServiceContainer.get_instance()


# Dependency functions for FastAPI
def get_container() -> ServiceContainer:
    """Get the service container instance."""
    return container


def get_orchestrator() -> PipelineOrchestrator:
    """Get the pipeline orchestrator instance."""
    return container.orchestrator


def get_refactor_service() -> RefactorService:
    """Get the refactor service instance."""
    return container.refactor_service


def get_github_source() -> GitHubSource:
    """Get the GitHub source instance."""
    return container.github_source
