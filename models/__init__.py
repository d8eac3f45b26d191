"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.catalog import (
    AssetCategory,
    ConflictStatus,
    CatalogRecord,
    RecordCreate,
    Asset,
    ExternalState,
    MatchedRecord,
)
from models.sync import (
    BatchStatus,
    CatalogCredentials,
    CatalogCandidate,
    UploadOutcome,
    BatchResult,
    BatchSummary,
    LoginRequest,
    LoginResponse,
)
from models.session import (
    SessionState,
    SessionStats,
    MatchFilter,
    ConflictFilter,
    AssetUpload,
    SessionCreate,
    MoveAssetRequest,
    AssignUnmatchedRequest,
    SessionResponse,
    RecordListResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Catalog
    "AssetCategory",
    "ConflictStatus",
    "CatalogRecord",
    "RecordCreate",
    "Asset",
    "ExternalState",
    "MatchedRecord",

    # Sync
    "BatchStatus",
    "CatalogCredentials",
    "CatalogCandidate",
    "UploadOutcome",
    "BatchResult",
    "BatchSummary",
    "LoginRequest",
    "LoginResponse",

    # Session
    "SessionState",
    "SessionStats",
    "MatchFilter",
    "ConflictFilter",
    "AssetUpload",
    "SessionCreate",
    "MoveAssetRequest",
    "AssignUnmatchedRequest",
    "SessionResponse",
    "RecordListResponse",
]
