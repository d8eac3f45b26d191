"""
Business logic services.

Each service handles one step of the matching and sync pipeline.
"""

from services.key_normalizer import KeyNormalizer
from services.matching_service import MatchingService, MatchResult, get_matching_service
from services.conflict_service import ConflictChecker, get_conflict_checker
from services.session_service import SessionStore, get_session_store
from services.sync_service import SyncService, get_sync_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "KeyNormalizer",
    "MatchingService",
    "MatchResult",
    "get_matching_service",
    "ConflictChecker",
    "get_conflict_checker",
    "SessionStore",
    "get_session_store",
    "SyncService",
    "get_sync_service",
    "ExportService",
    "get_export_service",
]
