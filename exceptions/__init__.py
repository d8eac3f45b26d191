"""
Custom exceptions module.

Pipeline failures (parse, lookup, upload) are recorded as data; these
exceptions cover invalid user commands and catalog transport errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,

    # Supplier profiles
    SupplierProfileNotFoundError,

    # Sessions
    SessionNotFoundError,
    RecordNotFoundError,
    AssetNotFoundError,
    AssetAlreadyAssignedError,
    InvalidAssetIndexError,
    RecordHasNoAssetsError,
    RecordAlreadyCommittedError,

    # Sync
    NothingSelectedError,
    BatchAlreadyRunningError,
    BatchAwaitingConfirmationError,
    InvalidStatusTransitionError,

    # Catalog service
    MissingCredentialsError,
    CatalogServiceError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",

    # Supplier profiles
    "SupplierProfileNotFoundError",

    # Sessions
    "SessionNotFoundError",
    "RecordNotFoundError",
    "AssetNotFoundError",
    "AssetAlreadyAssignedError",
    "InvalidAssetIndexError",
    "RecordHasNoAssetsError",
    "RecordAlreadyCommittedError",

    # Sync
    "NothingSelectedError",
    "BatchAlreadyRunningError",
    "BatchAwaitingConfirmationError",
    "InvalidStatusTransitionError",

    # Catalog service
    "MissingCredentialsError",
    "CatalogServiceError",
]
