"""
Pytest configuration and fixtures.
"""

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from factories import StubGateway, analyzed, make_module
from legacylens.core.constants import JobStatus
from legacylens.domain.job import CodeModule, Job
from legacylens.main import app
from legacylens.repositories.job_repo import InMemoryJobRepository


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def stub_gateway() -> StubGateway:
    """Inference gateway with fixed successful responses."""
    return StubGateway()


@pytest.fixture
def job_repository() -> InMemoryJobRepository:
    """Empty in-memory job store."""
    return InMemoryJobRepository()


@pytest.fixture
def sample_job_id() -> str:
    """Sample job ID for testing."""
    return "job1"


@pytest.fixture
def sample_modules() -> list[CodeModule]:
    """Seven unanalyzed modules."""
    return [make_module(i) for i in range(7)]


@pytest.fixture
async def complete_job(job_repository: InMemoryJobRepository) -> Job:
    """A stored job that went through analysis and ranking."""
    modules = [analyzed(make_module(i)) for i in range(3)]
    job = Job(
        job_id="job1",
        status=JobStatus.COMPLETE,
        repo_name="acme/payroll",
        total_modules=3,
        processed_modules=3,
        modules=modules,
    )
    return await job_repository.save(job)
