"""
Batch synchronization API routes.

Start, confirm and run endpoints block until the batch finishes; they
are plain `def` handlers so FastAPI runs them in its threadpool and a
cancel request can arrive while a batch runs.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
import structlog

from integrations.catalog_service import CatalogService
from models.sync import BatchResult, BatchSummary
from routes.catalog import catalog_service, handle_error, require_catalog
from services.export_service import get_export_service
from services.session_service import get_session_store
from services.sync_service import get_sync_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/{session_id}/sync", response_model=BatchSummary)
def start_sync(
    session_id: str,
    catalog: Optional[CatalogService] = Depends(catalog_service),
):
    """
    Synchronize the selected records.

    Returns status "confirming" when a target already has images;
    otherwise runs the batch and returns the results.

    Raises:
        409: Batch already running
        422: Nothing selected, or missing catalog credentials
    """
    try:
        return get_sync_service().start(session_id, require_catalog(catalog))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/sync/confirm", response_model=BatchSummary)
def confirm_sync(
    session_id: str,
    catalog: Optional[CatalogService] = Depends(catalog_service),
):
    """Accept overwriting existing catalog images and run the batch."""
    try:
        return get_sync_service().confirm(session_id, require_catalog(catalog))

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/sync/abort", response_model=BatchSummary)
async def abort_sync(session_id: str):
    """Decline the overwrite; nothing is uploaded."""
    try:
        return get_sync_service().abort(session_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/sync/cancel", response_model=BatchSummary)
async def cancel_sync(session_id: str):
    """Stop a running batch before its next record."""
    try:
        return get_sync_service().cancel(session_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/sync/results", response_model=list[BatchResult])
async def get_results(session_id: str):
    """Result log of every batch run in this session."""
    try:
        return list(get_session_store().get(session_id).results)

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/sync/results/export")
async def export_results(session_id: str):
    """Download the result log and unmatched assets as Excel."""
    try:
        state = get_session_store().get(session_id)
        output = get_export_service().generate_results_excel(state)
        filename = f"sync_results_{state.supplier}_{state.created_at:%Y%m%d_%H%M}.xlsx"

        return StreamingResponse(
            output,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except Exception as e:
        return handle_error(e)
