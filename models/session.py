"""
Session state and the request/response schemas around it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema, FrozenSchema
from models.catalog import Asset, MatchedRecord, RecordCreate
from models.sync import BatchResult, BatchStatus


class SessionState(FrozenSchema):
    """
    The editable working set of one matching session.

    `records` is keyed by record unique key and kept in matching order.
    Every mutation builds a new SessionState; nothing is changed in place.
    """

    session_id: str
    supplier: str
    records: dict[str, MatchedRecord] = Field(default_factory=dict)
    unmatched: tuple[Asset, ...] = ()
    results: tuple[BatchResult, ...] = ()
    batch_status: BatchStatus = BatchStatus.IDLE
    revision: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    def record_list(self) -> list[MatchedRecord]:
        return list(self.records.values())

    def pending_records(self) -> list[MatchedRecord]:
        """Selected, non-committed records with assets, in session order."""
        return [r for r in self.records.values() if r.pending]


class MatchFilter(str, Enum):
    ALL = "all"
    WITH_ASSETS = "with_assets"
    WITHOUT_ASSETS = "without_assets"


class ConflictFilter(str, Enum):
    ANY = "any"
    EXISTING = "existing"
    CLEAR = "clear"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"
    UNCHECKED = "unchecked"


class SessionStats(BaseSchema):
    total_records: int = 0
    with_assets: int = 0
    without_assets: int = 0
    existing_external: int = 0
    unknown_external: int = 0
    selected: int = 0
    committed: int = 0
    total_assets: int = 0
    unmatched_assets: int = 0


# ===================
# REQUESTS
# ===================

class AssetUpload(BaseSchema):
    """Raw file from the selection step, payload base64-encoded."""

    filename: str = Field(..., min_length=1)
    content_base64: str = ""


class SessionCreate(BaseSchema):
    supplier: Optional[str] = Field(None, description="Supplier profile name")
    records: list[RecordCreate] = Field(default_factory=list)
    assets: list[AssetUpload] = Field(default_factory=list)


class MoveAssetRequest(BaseSchema):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class AssignUnmatchedRequest(BaseSchema):
    filename: str = Field(..., min_length=1)


# ===================
# RESPONSES
# ===================

class SessionResponse(BaseSchema):
    session_id: str
    supplier: str
    batch_status: BatchStatus
    revision: int
    records: list[MatchedRecord]
    unmatched: list[Asset]
    stats: SessionStats

    @classmethod
    def from_state(cls, state: SessionState, stats: SessionStats) -> "SessionResponse":
        return cls(
            session_id=state.session_id,
            supplier=state.supplier,
            batch_status=state.batch_status,
            revision=state.revision,
            records=state.record_list(),
            unmatched=list(state.unmatched),
            stats=stats,
        )


class RecordListResponse(BaseSchema):
    data: list[MatchedRecord]
    total: int
