"""
Matching session API routes.

A session holds one supplier's matched records and unmatched assets
until they are synchronized. Every edit returns the full new state.
"""

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
import structlog

from exceptions import ValidationError
from integrations.catalog_service import CatalogService
from models.session import (
    AssignUnmatchedRequest,
    ConflictFilter,
    MatchFilter,
    MoveAssetRequest,
    RecordListResponse,
    SessionCreate,
    SessionResponse,
    SessionState,
    SessionStats,
)
from routes.catalog import catalog_service, handle_error, require_catalog
from services.session_service import (
    assign_unmatched,
    attach_file,
    compute_stats,
    deselect_all,
    filter_records,
    get_session_store,
    move_asset,
    open_session,
    recheck_session,
    remove_asset,
    reset_committed,
    select_all,
    toggle_select,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


def _response(state: SessionState) -> SessionResponse:
    return SessionResponse.from_state(state, compute_stats(state))


def _decode_payload(filename: str, content: str) -> bytes:
    try:
        return base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            message=f"Asset {filename} is not valid base64",
            code="INVALID_ASSET_PAYLOAD",
            details={"filename": filename}
        ) from e


# ===================
# SESSION
# ===================

@router.post("", response_model=SessionResponse, status_code=201)
def create_session(
    data: SessionCreate,
    catalog: Optional[CatalogService] = Depends(catalog_service),
):
    """
    Match a file selection against catalog records.

    With catalog credential headers, matched records are checked for
    existing catalog images; without them they stay unchecked.

    Raises:
        404: Unknown supplier profile
        422: Invalid asset payload
    """
    try:
        files = [(a.filename, _decode_payload(a.filename, a.content_base64)) for a in data.assets]
        records = [r.to_record() for r in data.records]

        state = open_session(data.supplier, records, files, catalog=catalog)
        return _response(state)

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    """
    Get the current session state.

    Raises:
        404: Session not found or expired
    """
    try:
        return _response(get_session_store().get(session_id))

    except Exception as e:
        return handle_error(e)


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str):
    """Discard a session."""
    try:
        get_session_store().delete(session_id)
        return None

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/records", response_model=RecordListResponse)
async def list_records(
    session_id: str,
    match_status: MatchFilter = Query(MatchFilter.ALL, description="Filter by asset presence"),
    conflict_status: ConflictFilter = Query(ConflictFilter.ANY, description="Filter by catalog state"),
    q: Optional[str] = Query(None, description="Search reference, variant or name"),
):
    """Filtered view of the session's records. Never changes the session."""
    try:
        state = get_session_store().get(session_id)
        records = filter_records(state, match_status, conflict_status, q)
        return RecordListResponse(data=records, total=len(records))

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/stats", response_model=SessionStats)
async def get_stats(session_id: str):
    """Session totals."""
    try:
        return compute_stats(get_session_store().get(session_id))

    except Exception as e:
        return handle_error(e)


# ===================
# SELECTION
# ===================

@router.post("/{session_id}/records/{record_key}/toggle", response_model=SessionResponse)
async def toggle_record(session_id: str, record_key: str):
    """
    Flip a record's selection.

    Raises:
        404: Record not found
        409: Record already synchronized
        422: Record has no assets
    """
    try:
        return _response(get_session_store().apply(session_id, toggle_select, record_key))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/select-all", response_model=SessionResponse)
async def select_all_records(session_id: str):
    """Select every non-synchronized record that has assets."""
    try:
        return _response(get_session_store().apply(session_id, select_all))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/deselect-all", response_model=SessionResponse)
async def deselect_all_records(session_id: str):
    try:
        return _response(get_session_store().apply(session_id, deselect_all))

    except Exception as e:
        return handle_error(e)


# ===================
# ASSET EDITS
# ===================

@router.post("/{session_id}/records/{record_key}/assets", response_model=SessionResponse)
async def add_record_asset(
    session_id: str,
    record_key: str,
    file: UploadFile = File(..., description="Image file (.jpg, .jpeg, .png, .webp)"),
):
    """
    Append a newly picked image to a record and select it.

    Raises:
        404: Session or record not found
        409: Asset already assigned elsewhere
        422: Not an image file
    """
    try:
        payload = await file.read()
        state = attach_file(session_id, record_key, file.filename or "", payload)
        return _response(state)

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/records/{record_key}/assign", response_model=SessionResponse)
async def assign_unmatched_asset(session_id: str, record_key: str, data: AssignUnmatchedRequest):
    """Move an asset from the unmatched pool onto a record."""
    try:
        state = get_session_store().apply(session_id, assign_unmatched, record_key, data.filename)
        return _response(state)

    except Exception as e:
        return handle_error(e)


@router.delete("/{session_id}/records/{record_key}/assets/{filename}", response_model=SessionResponse)
async def remove_record_asset(session_id: str, record_key: str, filename: str):
    """Remove an asset from a record. Exclusive assets go back to the unmatched pool."""
    try:
        state = get_session_store().apply(session_id, remove_asset, record_key, filename)
        return _response(state)

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/records/{record_key}/move", response_model=SessionResponse)
async def move_record_asset(session_id: str, record_key: str, data: MoveAssetRequest):
    """
    Reorder a record's assets. Position 0 is the cover image.

    Raises:
        422: Position out of range
    """
    try:
        state = get_session_store().apply(
            session_id, move_asset, record_key, data.from_index, data.to_index
        )
        return _response(state)

    except Exception as e:
        return handle_error(e)


# ===================
# HISTORY / CHECKS
# ===================

@router.post("/{session_id}/recheck", response_model=SessionResponse)
def recheck(
    session_id: str,
    catalog: Optional[CatalogService] = Depends(catalog_service),
):
    """
    Retry catalog lookups that failed or never ran.

    Raises:
        422: Missing catalog credentials
    """
    try:
        return _response(recheck_session(session_id, require_catalog(catalog)))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/undo", response_model=SessionResponse)
async def undo(session_id: str):
    """Step back to the state before the last edit."""
    try:
        return _response(get_session_store().undo(session_id))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/reset", response_model=SessionResponse)
async def reset(session_id: str):
    """Clear synchronized flags and results; reapply the default selection."""
    try:
        return _response(get_session_store().apply(session_id, reset_committed))

    except Exception as e:
        return handle_error(e)
