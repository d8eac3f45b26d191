"""
Schemas for the catalog service boundary and batch synchronization.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema, FrozenSchema


class BatchStatus(str, Enum):
    """
    Batch synchronizer state machine.

    IDLE -> CONFIRMING -> RUNNING -> DONE
    IDLE -> RUNNING -> DONE (nothing would be overwritten)
    CONFIRMING -> IDLE (user declined)
    """
    IDLE = "idle"
    CONFIRMING = "confirming"
    RUNNING = "running"
    DONE = "done"


class CatalogCredentials(FrozenSchema):
    """Explicit credential context for catalog service calls."""

    uid: int = Field(..., ge=1)
    password: str = Field(..., min_length=1, repr=False)


class CatalogCandidate(FrozenSchema):
    """One lookup result from the catalog service."""

    external_id: int
    name: str = ""
    reference: str = ""
    variant_label: Optional[str] = None
    has_existing_assets: bool = False
    existing_asset_count: int = 0


class UploadOutcome(FrozenSchema):
    """Result of a single asset upload."""

    success: bool
    image_id: Optional[int] = None
    error: Optional[str] = None


class BatchResult(FrozenSchema):
    """One line of the batch result log."""

    record_key: str
    display_name: str
    success: bool
    assets_uploaded: int = 0
    assets_total: int = 0
    external_id: Optional[int] = None
    error: Optional[str] = None


class BatchSummary(BaseSchema):
    """Response for a batch start/confirm/cancel call."""

    status: BatchStatus
    requires_confirmation: bool = False
    overwrite_keys: list[str] = Field(default_factory=list)
    pending_count: int = 0
    succeeded: int = 0
    failed: int = 0
    assets_uploaded: int = 0
    cancelled: bool = False
    results: list[BatchResult] = Field(default_factory=list)


class LoginRequest(BaseSchema):
    """Exchange catalog username/password for a uid."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseSchema):
    uid: int
