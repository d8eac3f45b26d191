"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# SUPPLIER PROFILES
# ===================

class SupplierProfileNotFoundError(NotFoundError):
    """No supplier profile with this name."""

    def __init__(self, supplier: str):
        super().__init__(
            resource="Supplier profile",
            identifier=supplier,
            code="SUPPLIER_PROFILE_NOT_FOUND"
        )


# ===================
# SESSION ERRORS
# ===================

class SessionNotFoundError(NotFoundError):
    """Matching session not found or expired."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Session",
            identifier=session_id,
            code="SESSION_NOT_FOUND"
        )


class RecordNotFoundError(NotFoundError):
    """Catalog record not part of the session."""

    def __init__(self, record_key: str):
        super().__init__(
            resource="Record",
            identifier=record_key,
            code="RECORD_NOT_FOUND"
        )


class AssetNotFoundError(NotFoundError):
    """Asset not attached to the record (or not in the unmatched pool)."""

    def __init__(self, filename: str):
        super().__init__(
            resource="Asset",
            identifier=filename,
            code="ASSET_NOT_FOUND"
        )


class AssetAlreadyAssignedError(ConflictError):
    """Exclusive asset already belongs to another record."""

    def __init__(self, filename: str, record_key: str):
        super().__init__(
            code="ASSET_ALREADY_ASSIGNED",
            message=f"Asset {filename} is already assigned to {record_key}",
            details={"filename": filename, "record_key": record_key}
        )


class InvalidAssetIndexError(ValidationError):
    """Asset position out of range."""

    def __init__(self, index: int, size: int):
        super().__init__(
            code="INVALID_ASSET_INDEX",
            message=f"Asset position {index} is out of range",
            details={"index": index, "size": size}
        )


class RecordHasNoAssetsError(ValidationError):
    """Record cannot be selected without assets."""

    def __init__(self, record_key: str):
        super().__init__(
            code="RECORD_HAS_NO_ASSETS",
            message="Only records with assets can be selected",
            details={"record_key": record_key}
        )


class RecordAlreadyCommittedError(ConflictError):
    """Record was already synchronized in this session."""

    def __init__(self, record_key: str):
        super().__init__(
            code="RECORD_ALREADY_COMMITTED",
            message="Record was already synchronized; reset the session to edit it",
            details={"record_key": record_key}
        )


# ===================
# SYNC ERRORS
# ===================

class NothingSelectedError(ValidationError):
    """Batch started without any pending selected record."""

    def __init__(self):
        super().__init__(
            code="NOTHING_SELECTED",
            message="Select at least one record with assets before synchronizing"
        )


class BatchAlreadyRunningError(ConflictError):
    """A batch is already running for this session."""

    def __init__(self, session_id: str):
        super().__init__(
            code="BATCH_ALREADY_RUNNING",
            message="A synchronization batch is already running for this session",
            details={"session_id": session_id}
        )


class BatchAwaitingConfirmationError(ConflictError):
    """Batch is waiting for the overwrite confirmation."""

    def __init__(self, session_id: str):
        super().__init__(
            code="BATCH_AWAITING_CONFIRMATION",
            message="Confirm or abort the pending synchronization first",
            details={"session_id": session_id}
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid batch status transition."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
            }
        )


# ===================
# CATALOG SERVICE ERRORS
# ===================

class MissingCredentialsError(ValidationError):
    """Catalog credentials missing from the request."""

    def __init__(self):
        super().__init__(
            code="MISSING_CREDENTIALS",
            message="Catalog credentials are required for this operation"
        )


class CatalogServiceError(ExternalServiceError):
    """Catalog service call failed (transport, timeout or RPC error)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="catalog",
            message=message,
            details=details
        )
