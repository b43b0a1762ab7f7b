"""
Job endpoints: ingestion, stage triggers, refactoring and status.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from legacylens.api.deps import get_github_source, get_orchestrator, get_refactor_service
from legacylens.core.constants import PipelineStage
from legacylens.core.exceptions import InvalidRequestError
from legacylens.core.logging import get_logger
from legacylens.orchestration.pipeline import PipelineOrchestrator
from legacylens.services.ingestion import GitHubSource, extract_archive
from legacylens.services.refactor_service import RefactorService

logger = get_logger(__name__)

router = APIRouter()


# Request/Response models
class IngestResponse(BaseModel):
    """Response for a new ingestion job."""

    job_id: str
    status: str
    repo_name: str
    total_modules: int


class StageResponse(BaseModel):
    """Response for a queued pipeline stage."""

    job_id: str
    stage: str
    status: str
    queued: bool = True


class RefactorRequest(BaseModel):
    """Request to refactor one module."""

    module_id: str = Field(..., description="Module to refactor")
    target_language: str = Field(..., description="Language to rewrite the module in")


class RefactorResponse(BaseModel):
    """Response for a completed refactor."""

    success: bool = True
    refactored_module: dict[str, Any]
    drift_warning: Optional[str] = None
    related_modules_used: int = 0


@router.post("/jobs/ingest", response_model=IngestResponse, status_code=202)
async def ingest(
    file: Optional[UploadFile] = File(default=None, description="Zip archive of source files"),
    repo_url: Optional[str] = Form(default=None, description="GitHub repository URL"),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    github_source: GitHubSource = Depends(get_github_source),
) -> IngestResponse:
    """
    Start a job from a zip upload or a GitHub repository.

    Analysis is queued as soon as the files are chunked.
    """
    if file is not None:
        files = extract_archive(await file.read())
        repo_name = file.filename or "upload.zip"
    elif repo_url:
        repo_name, files = await github_source.fetch(repo_url)
    else:
        raise InvalidRequestError("Provide either a zip file or a repo_url", field="file")

    logger.info("Ingesting", repo_name=repo_name, files=len(files))
    job = await orchestrator.ingest(files, repo_name=repo_name)

    return IngestResponse(
        job_id=job.job_id,
        status=job.status,
        repo_name=job.repo_name,
        total_modules=job.total_modules,
    )


@router.post("/jobs/{job_id}/analyze", response_model=StageResponse, status_code=202)
async def analyze(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> StageResponse:
    """Queue the analyze stage (job must be ingesting)."""
    job = await orchestrator.request_stage(job_id, PipelineStage.ANALYZE)
    return StageResponse(job_id=job_id, stage=PipelineStage.ANALYZE.value, status=job.status)


@router.post("/jobs/{job_id}/roadmap", response_model=StageResponse, status_code=202)
async def roadmap(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> StageResponse:
    """Queue the roadmap stage (job must be roadmapping)."""
    job = await orchestrator.request_stage(job_id, PipelineStage.ROADMAP)
    return StageResponse(job_id=job_id, stage=PipelineStage.ROADMAP.value, status=job.status)


@router.post("/jobs/{job_id}/refactor", response_model=RefactorResponse)
async def refactor(
    job_id: str,
    request: RefactorRequest,
    refactor_service: RefactorService = Depends(get_refactor_service),
) -> RefactorResponse:
    """Rewrite one module in the target language, guarded by its intent."""
    result = await refactor_service.refactor(job_id, request.module_id, request.target_language)
    return RefactorResponse(
        refactored_module=result.refactored_module.model_dump(mode="json", by_alias=True),
        drift_warning=result.drift_warning,
        related_modules_used=result.related_modules_used,
    )


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Get the full job document."""
    job = await orchestrator.get_job(job_id)
    return job.to_document()


@router.get("/jobs/{job_id}/roadmap/summary")
async def get_roadmap_summary(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Phase counts and total effort of a completed job's roadmap."""
    summary = await orchestrator.get_roadmap_summary(job_id)
    return {"jobId": job_id, **summary.to_dict()}
