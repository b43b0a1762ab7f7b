"""
Custom exception hierarchy for LegacyLens.
Provides structured error handling with proper HTTP status codes.
"""

from typing import Any, Optional


class LegacyLensError(Exception):
    """Base exception for all LegacyLens errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(LegacyLensError):
    """Request validation failed."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details=details,
            status_code=400,
        )


class InvalidRequestError(ValidationError):
    """Invalid or missing request parameter."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message=message, details=details)
        self.code = "INVALID_REQUEST"


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(LegacyLensError):
    """Requested resource not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        msg = message or f"{resource_type} not found"
        if resource_id:
            msg = f"{resource_type} with ID '{resource_id}' not found"

        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )


class JobNotFoundError(NotFoundError):
    """Job not found."""

    def __init__(self, job_id: str) -> None:
        super().__init__(resource_type="Job", resource_id=job_id)
        self.code = "JOB_NOT_FOUND"


class ModuleNotFoundError(NotFoundError):
    """Module not found within a job."""

    def __init__(self, job_id: str, module_id: str) -> None:
        super().__init__(resource_type="Module", resource_id=module_id)
        self.details["job_id"] = job_id
        self.code = "MODULE_NOT_FOUND"


# =============================================================================
# State Errors (409)
# =============================================================================


class InvalidStateError(LegacyLensError):
    """Job is not in the status required by the requested operation."""

    def __init__(
        self,
        job_id: str,
        current_status: str,
        required: list[str],
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message
            or f"Job '{job_id}' is in {current_status} state, expected {' or '.join(required)}",
            code="INVALID_STATE",
            details={"job_id": job_id, "status": current_status, "required": required},
            status_code=409,
        )


class ConcurrencyConflictError(LegacyLensError):
    """Stored job version changed between read and write."""

    def __init__(self, job_id: str, expected_version: int, actual_version: Optional[int]) -> None:
        super().__init__(
            message=f"Job '{job_id}' was modified concurrently",
            code="CONCURRENCY_CONFLICT",
            details={
                "job_id": job_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            status_code=409,
        )


# =============================================================================
# External Service Errors (502, 503)
# =============================================================================


class UpstreamError(LegacyLensError):
    """Error communicating with an external service."""

    retryable: bool = False

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
        status_code: int = 502,
    ) -> None:
        super().__init__(
            message=f"{service_name} error: {message}",
            code="UPSTREAM_ERROR",
            details={"service": service_name, **(details or {})},
            status_code=status_code,
        )


class RateLimitError(UpstreamError):
    """Upstream service rejected the call for rate limiting."""

    retryable = True

    def __init__(self, service_name: str, retry_after: Optional[float] = None) -> None:
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after

        super().__init__(
            service_name=service_name,
            message="rate limit exceeded",
            details=details,
            status_code=429,
        )
        self.code = "RATE_LIMIT_EXCEEDED"


class IndexingError(UpstreamError):
    """Error communicating with the search index."""

    def __init__(self, message: str, module_id: Optional[str] = None) -> None:
        details = {"module_id": module_id} if module_id else {}
        super().__init__(service_name="Search index", message=message, details=details)
        self.code = "INDEXING_ERROR"


class JobStoreError(UpstreamError):
    """Error communicating with the job store backend."""

    def __init__(self, message: str) -> None:
        super().__init__(service_name="Job store", message=message)
        self.code = "JOB_STORE_ERROR"


class IngestionSourceError(UpstreamError):
    """Error fetching source files from a remote repository."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="GitHub", message=message, details=details)
        self.code = "INGESTION_SOURCE_ERROR"


class StageDispatchError(LegacyLensError):
    """A pipeline stage could not be handed to the work queue."""

    def __init__(self, job_id: str, stage: str, reason: str) -> None:
        super().__init__(
            message=f"Could not enqueue stage '{stage}' for job '{job_id}': {reason}",
            code="STAGE_DISPATCH_ERROR",
            details={"job_id": job_id, "stage": stage},
            status_code=503,
        )


# =============================================================================
# Parse Errors (502)
# =============================================================================


class ParseFailureError(LegacyLensError):
    """Structured inference response could not be decoded."""

    def __init__(
        self,
        message: str,
        raw_response: str = "",
        code: str = "PARSE_FAILURE",
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            details={"raw_response": raw_response[:500]},
            status_code=502,
        )
        self.raw_response = raw_response


class MalformedResponseError(ParseFailureError):
    """Response text is not JSON at all."""

    def __init__(self, reason: str, raw_response: str) -> None:
        super().__init__(
            message=f"Failed to parse JSON response: {reason}",
            raw_response=raw_response,
            code="MALFORMED_RESPONSE",
        )


class ResponseShapeError(ParseFailureError):
    """Response is well-formed JSON but does not match the expected shape."""

    def __init__(self, reason: str, raw_response: str) -> None:
        super().__init__(
            message=f"JSON response has unexpected shape: {reason}",
            raw_response=raw_response,
            code="RESPONSE_SHAPE_MISMATCH",
        )
