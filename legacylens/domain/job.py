"""
Job domain model: the analyzed modules, the migration roadmap and refactor results.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from legacylens.core.constants import JobStatus, Recommendation, RiskLevel


class DomainModel(BaseModel):
    """Base model serialized with camelCase keys for storage and the API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class CodeModule(DomainModel):
    """One contiguous chunk of a source file, the unit of analysis and refactoring."""

    module_id: str = Field(..., description="<jobId>_<sanitized path>_<chunk index>")
    file_path: str
    language: str
    function_name: Optional[str] = Field(default=None, description="Best-effort extracted identifier")
    raw_code: str = Field(..., description="Exact substring of the original file")

    intent: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    requires_human_review: bool = False
    domain_hints: list[str] = Field(default_factory=list)


class RoadmapItem(DomainModel):
    """Migration ranking of a single module."""

    module_id: str
    phase: int = Field(..., ge=1, le=3)
    risk_level: RiskLevel
    effort_days: float = Field(default=0.0, ge=0.0)
    reasoning: str = ""
    recommendation: Recommendation
    dependencies: list[str] = Field(default_factory=list)


class RefactoredModule(DomainModel):
    """Result of one guardrailed refactor action."""

    module_id: str
    original_code: str
    refactored_code: str
    target_language: str
    test_scaffold: str
    intent_used_as_guardrail: str
    guardrail_mode: bool = True
    drift_warning: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Job(DomainModel):
    """One ingestion request and everything derived from it."""

    job_id: str = Field(..., description="Opaque job identifier")
    status: JobStatus = Field(default=JobStatus.PENDING)
    repo_name: str = Field(default="unknown", description="Archive name or repository path")

    total_modules: int = Field(default=0, ge=0)
    processed_modules: int = Field(default=0, ge=0)

    modules: list[CodeModule] = Field(default_factory=list)
    roadmap: list[RoadmapItem] = Field(default_factory=list)
    refactored_modules: list[RefactoredModule] = Field(default_factory=list)

    error_message: Optional[str] = None
    active_stage: Optional[str] = Field(
        default=None, description="Stage currently holding the job, if any"
    )

    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_progress(self) -> "Job":
        if self.processed_modules > self.total_modules:
            raise ValueError(
                f"processed_modules ({self.processed_modules}) exceeds "
                f"total_modules ({self.total_modules})"
            )
        if self.roadmap and self.status != JobStatus.COMPLETE:
            raise ValueError("roadmap is only populated on complete jobs")
        return self

    def find_module(self, module_id: str) -> Optional[CodeModule]:
        """Return the module with the given ID, if present."""
        for module in self.modules:
            if module.module_id == module_id:
                return module
        return None

    def to_document(self) -> dict:
        """Serialize for storage and API responses."""
        return self.model_dump(mode="json", by_alias=True)
