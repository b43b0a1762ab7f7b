"""
Unit tests for the job endpoints.
"""

import asyncio
import base64
import io
import zipfile
from typing import AsyncGenerator

import httpx
import pytest
from httpx import AsyncClient

from factories import StubGateway
from legacylens.api.deps import (
    ServiceContainer,
    get_container,
    get_github_source,
    get_orchestrator,
    get_refactor_service,
)
from legacylens.core.config import GitHubSettings, PipelineSettings, Settings
from legacylens.main import app
from legacylens.repositories.job_repo import InMemoryJobRepository
from legacylens.services.ingestion import GitHubSource

PAYROLL_PY = "def gross_pay(hours, rate):\n    return hours * rate\n"


def _zip(entries: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _github_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/repos/acme/payroll/contents/":
        content = base64.b64encode(PAYROLL_PY.encode()).decode()
        return httpx.Response(200, json=[{"type": "file", "path": "pay.py", "content": content}])
    return httpx.Response(404)


@pytest.fixture
async def services() -> AsyncGenerator[ServiceContainer, None]:
    """A started container wired to stub collaborators and installed in the app."""
    container = ServiceContainer(
        config=Settings(pipeline=PipelineSettings(batch_cooldown_seconds=0)),
        gateway=StubGateway(),
        job_repository=InMemoryJobRepository(),
        github_source=GitHubSource(
            GitHubSettings(api_url="https://api.test"),
            transport=httpx.MockTransport(_github_handler),
        ),
    )
    await container.start()

    app.dependency_overrides[get_container] = lambda: container
    app.dependency_overrides[get_orchestrator] = lambda: container.orchestrator
    app.dependency_overrides[get_refactor_service] = lambda: container.refactor_service
    app.dependency_overrides[get_github_source] = lambda: container.github_source

    yield container

    app.dependency_overrides.clear()
    await container.shutdown()


async def _ingest_zip(async_client: AsyncClient, services: ServiceContainer) -> str:
    archive = _zip({"legacy/pay.py": PAYROLL_PY, "legacy/README.md": "# Payroll\n"})
    response = await async_client.post(
        "/api/v1/jobs/ingest",
        files={"file": ("payroll.zip", archive, "application/zip")},
    )
    assert response.status_code == 202
    await asyncio.wait_for(services.stage_queue.join(), timeout=5)
    return response.json()["job_id"]


class TestIngestEndpoint:
    """Tests for POST /jobs/ingest."""

    @pytest.mark.asyncio
    async def test_zip_upload_runs_pipeline(
        self, async_client: AsyncClient, services: ServiceContainer
    ) -> None:
        """An uploaded archive is chunked and runs through to a roadmap."""
        archive = _zip({"legacy/pay.py": PAYROLL_PY, "legacy/README.md": "# Payroll\n"})

        response = await async_client.post(
            "/api/v1/jobs/ingest",
            files={"file": ("payroll.zip", archive, "application/zip")},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "ingesting"
        assert data["repo_name"] == "payroll.zip"
        assert data["total_modules"] == 1

        await asyncio.wait_for(services.stage_queue.join(), timeout=5)

        job = (await async_client.get(f"/api/v1/jobs/{data['job_id']}")).json()
        assert job["status"] == "complete"
        assert job["processedModules"] == 1
        assert job["modules"][0]["rawCode"] == PAYROLL_PY
        assert job["modules"][0]["intent"] == "Calculates gross pay for hourly employees"
        assert [item["moduleId"] for item in job["roadmap"]] == [job["modules"][0]["moduleId"]]

    @pytest.mark.asyncio
    async def test_repo_url(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """A GitHub repository URL is fetched and ingested."""
        response = await async_client.post(
            "/api/v1/jobs/ingest",
            data={"repo_url": "https://github.com/acme/payroll"},
        )

        assert response.status_code == 202
        assert response.json()["repo_name"] == "acme/payroll"
        await asyncio.wait_for(services.stage_queue.join(), timeout=5)

    @pytest.mark.asyncio
    async def test_missing_repository(
        self, async_client: AsyncClient, services: ServiceContainer
    ) -> None:
        """An unknown repository is an upstream error."""
        response = await async_client.post(
            "/api/v1/jobs/ingest",
            data={"repo_url": "acme/missing"},
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "INGESTION_SOURCE_ERROR"

    @pytest.mark.asyncio
    async def test_no_input(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """Neither a file nor a URL is a bad request."""
        response = await async_client.post("/api/v1/jobs/ingest")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    @pytest.mark.asyncio
    async def test_bad_archive(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """A file that is not a zip is a validation error."""
        response = await async_client.post(
            "/api/v1/jobs/ingest",
            files={"file": ("payroll.zip", b"not a zip", "application/zip")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestJobEndpoints:
    """Tests for stage triggers, refactoring and status endpoints."""

    @pytest.mark.asyncio
    async def test_unknown_job(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """Unknown jobs are 404."""
        response = await async_client.get("/api/v1/jobs/nope")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_stage_in_wrong_state(
        self, async_client: AsyncClient, services: ServiceContainer
    ) -> None:
        """Triggering analysis on a complete job is a conflict."""
        job_id = await _ingest_zip(async_client, services)

        response = await async_client.post(f"/api/v1/jobs/{job_id}/analyze")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_roadmap_summary(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """A complete job reports its roadmap summary."""
        job_id = await _ingest_zip(async_client, services)

        response = await async_client.get(f"/api/v1/jobs/{job_id}/roadmap/summary")

        assert response.status_code == 200
        assert response.json() == {
            "jobId": job_id,
            "totalModules": 1,
            "phase1": 1,
            "phase2": 0,
            "phase3": 0,
            "totalEffortDays": 2.0,
            "requiresReview": 0,
        }

    @pytest.mark.asyncio
    async def test_refactor(self, async_client: AsyncClient, services: ServiceContainer) -> None:
        """A module is refactored and stored on the job."""
        job_id = await _ingest_zip(async_client, services)
        job = (await async_client.get(f"/api/v1/jobs/{job_id}")).json()
        module_id = job["modules"][0]["moduleId"]

        response = await async_client.post(
            f"/api/v1/jobs/{job_id}/refactor",
            json={"module_id": module_id, "target_language": "python"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["drift_warning"] is None
        assert data["refactored_module"]["moduleId"] == module_id
        assert data["refactored_module"]["originalCode"] == PAYROLL_PY
        assert data["refactored_module"]["guardrailMode"] is True

        job = (await async_client.get(f"/api/v1/jobs/{job_id}")).json()
        assert job["status"] == "complete"
        assert len(job["refactoredModules"]) == 1

    @pytest.mark.asyncio
    async def test_refactor_unknown_module(
        self, async_client: AsyncClient, services: ServiceContainer
    ) -> None:
        """Refactoring an unknown module is 404."""
        job_id = await _ingest_zip(async_client, services)

        response = await async_client.post(
            f"/api/v1/jobs/{job_id}/refactor",
            json={"module_id": "nope", "target_language": "python"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MODULE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_readiness_with_running_queue(
        self, async_client: AsyncClient, services: ServiceContainer
    ) -> None:
        """Readiness reports the started stage workers."""
        response = await async_client.get("/api/v1/health/ready")

        assert response.json()["status"] == "ready"
