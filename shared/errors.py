"""
Shared error handling for the offline agent.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for offline agent components."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(AccessLayerException):
    """A requested record does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class NetworkError(AccessLayerException):
    """A network fetch failed before a response was received."""

    status_code = 502

    def __init__(self, url: str, message: str = "Network request failed", details: Optional[Dict[str, Any]] = None):
        self.url = url
        super().__init__("NETWORK_ERROR", f"{message}: {url}", {"url": url, **(details or {})})


class SeedFailure(AccessLayerException):
    """Install-time static tier seeding failed; nothing was committed."""

    status_code = 503

    def __init__(self, message: str = "Static tier seeding failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("SEED_FAILURE", message, details)


class CacheWriteError(AccessLayerException):
    """A tier write could not be stored (quota, serialization, backend outage)."""

    status_code = 500

    def __init__(self, message: str = "Cache write failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_WRITE_ERROR", message, details)


class StaleTierWriteError(CacheWriteError):
    """A write targeted a tier of a version that is no longer active."""

    def __init__(self, tier_name: str):
        super().__init__(f"Tier {tier_name} belongs to an inactive version", {"tier": tier_name})
        self.code = "STALE_TIER_WRITE"


class QueueStoreError(AccessLayerException):
    """The persistent submission queue is unavailable."""

    status_code = 503

    def __init__(self, message: str = "Queue store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("QUEUE_STORE_ERROR", message, details)


class SyncItemFailure(AccessLayerException):
    """Delivery of one queued submission failed; it stays queued."""

    status_code = 502

    def __init__(self, submission_id: int, message: str = "Submission delivery failed", details: Optional[Dict[str, Any]] = None):
        self.submission_id = submission_id
        super().__init__("SYNC_ITEM_FAILURE", message, {"id": submission_id, **(details or {})})


class OfflineSubmissionNotRecorded(AccessLayerException):
    """A submission could neither be delivered nor queued for later."""

    status_code = 503

    def __init__(self, message: str = "Offline submission not recorded", details: Optional[Dict[str, Any]] = None):
        super().__init__("SUBMISSION_NOT_RECORDED", message, details)
