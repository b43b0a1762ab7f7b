"""
System-wide constants for LegacyLens.
"""

from enum import Enum


# =============================================================================
# Enums
# =============================================================================


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    INGESTING = "ingesting"
    ANALYZING = "analyzing"
    ROADMAPPING = "roadmapping"
    COMPLETE = "complete"
    ERROR = "error"


class PipelineStage(str, Enum):
    """Stages that advance a job through the pipeline."""

    ANALYZE = "analyze"
    ROADMAP = "roadmap"


class RiskLevel(str, Enum):
    """Migration risk of a module."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Recommendation(str, Enum):
    """Recommended migration treatment of a module."""

    REFACTOR = "refactor"
    REWRITE = "rewrite"
    ISOLATE = "isolate"
    DEFER = "defer"


class ChunkStrategy(str, Enum):
    """How a file was partitioned into modules."""

    BRACE = "brace"
    PARAGRAPH = "paragraph"
    LINE_WINDOW = "line_window"


# =============================================================================
# API Constants
# =============================================================================

API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

# =============================================================================
# Ingestion
# =============================================================================

SUPPORTED_EXTENSIONS = (".cbl", ".cob", ".php", ".py", ".java", ".js", ".ts", ".cs", ".vb")

# Language tags (file extension without the dot) per chunking family
BRACE_LANGUAGES = frozenset(
    {"js", "jsx", "ts", "tsx", "java", "cs", "php", "c", "h", "cpp", "hpp", "go", "kt", "scala", "swift", "rs"}
)
PARAGRAPH_LANGUAGES = frozenset({"cbl", "cob", "cobol", "cpy"})

DEFAULT_MAX_CHUNK_LINES = 150

# =============================================================================
# Analysis sentinels
# =============================================================================

EXTRACTION_FAILED_HINT = "extraction-failed"
BATCH_FAILED_HINT = "batch-failed"

DEFAULT_HUMAN_REVIEW_THRESHOLD = 0.65

# =============================================================================
# Cache Keys
# =============================================================================

JOB_KEY = "job:{job_id}"
