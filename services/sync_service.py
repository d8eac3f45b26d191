"""
Batch synchronizer: pushes selected records' assets to the catalog.

State machine per session:

    IDLE/DONE -> RUNNING (targets checked) -> CONFIRMING -> RUNNING -> DONE
    IDLE/DONE -> RUNNING -> DONE       (nothing would be overwritten)
    CONFIRMING -> IDLE                 (user declined)

The session is claimed before any catalog lookup, so no edit can slip
in between the overwrite check and the uploads.

Records are processed strictly one after another, assets in list order
(position 0 becomes the cover image). A record fails only when its
target cannot be resolved or no asset uploads; failures never abort
the batch.
"""

import threading
from typing import Optional
import structlog

from config.supplier_profiles import get_supplier_profile
from exceptions import (
    BatchAlreadyRunningError,
    CatalogServiceError,
    InvalidStatusTransitionError,
    NothingSelectedError,
)
from integrations.catalog_service import CatalogService
from models.catalog import Asset, CatalogRecord, MatchedRecord
from models.session import SessionState
from models.sync import BatchResult, BatchStatus, BatchSummary
from services.conflict_service import ConflictChecker, select_best_candidate
from services.key_normalizer import KeyNormalizer
from services.session_service import (
    SessionStore,
    apply_records,
    get_session_store,
    mark_committed,
    mark_failed,
)

logger = structlog.get_logger(__name__)


def upload_display_name(record: CatalogRecord, asset: Asset, position: int) -> str:
    """
    Name given to an uploaded image.

    'AD207B - Lizeron - Product 1', 'AD207B - Lizeron - Shared 3'
    """
    kind = "Shared" if asset.is_shared else "Product"
    return f"{record.reference_code} - {record.variant_label} - {kind} {position}"


def _with_status(state: SessionState, status: BatchStatus) -> SessionState:
    return state.model_copy(update={"batch_status": status, "revision": state.revision + 1})


def _claim_batch(state: SessionState) -> SessionState:
    """IDLE/DONE -> RUNNING; edits are blocked while targets are checked."""
    if state.batch_status in (BatchStatus.RUNNING, BatchStatus.CONFIRMING):
        raise BatchAlreadyRunningError(state.session_id)
    if not state.pending_records():
        raise NothingSelectedError()
    return _with_status(state, BatchStatus.RUNNING)


def _leave_confirming(state: SessionState, status: BatchStatus) -> SessionState:
    if state.batch_status != BatchStatus.CONFIRMING:
        raise InvalidStatusTransitionError(state.batch_status.value, status.value)
    return _with_status(state, status)


def _record_outcome(state: SessionState, key: str, result: BatchResult) -> SessionState:
    if result.success:
        state = mark_committed(state, key)
    else:
        state = mark_failed(state, key, result.error or "Upload failed")
    return state.model_copy(update={"results": state.results + (result,)})


class SyncService:
    """Runs synchronization batches over sessions in a SessionStore."""

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store or get_session_store()
        self._cancel_events: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    # ===================
    # STATE MACHINE
    # ===================

    def start(self, session_id: str, catalog: CatalogService) -> BatchSummary:
        """
        Start a batch over the selected records.

        The session is claimed first, then lookups that failed or never
        ran are retried. If any target already holds images the batch
        stops at CONFIRMING and nothing is uploaded until `confirm`.

        Raises:
            NothingSelectedError: No selected record with assets
            BatchAlreadyRunningError: Batch running or awaiting confirmation
        """
        state = self.store.update(session_id, _claim_batch, record_history=False)
        checker = ConflictChecker(catalog, get_supplier_profile(state.supplier))

        try:
            checked = checker.recheck(state.pending_records())
        except Exception:
            self.store.update(session_id, _with_status, BatchStatus.IDLE, record_history=False)
            raise

        state = self.store.update(session_id, apply_records, checked, record_history=False)
        pending = state.pending_records()

        overwrite_keys = [r.key for r in pending if r.external.has_existing_assets]
        if overwrite_keys:
            self.store.update(session_id, _with_status, BatchStatus.CONFIRMING, record_history=False)
            logger.info(
                "batch_confirmation_required",
                session_id=session_id,
                pending=len(pending),
                overwrite=len(overwrite_keys),
            )
            return BatchSummary(
                status=BatchStatus.CONFIRMING,
                requires_confirmation=True,
                overwrite_keys=overwrite_keys,
                pending_count=len(pending),
            )

        return self._run(session_id, catalog)

    def confirm(self, session_id: str, catalog: CatalogService) -> BatchSummary:
        """User accepted overwriting existing images: run the batch."""
        self.store.update(session_id, _leave_confirming, BatchStatus.RUNNING, record_history=False)
        logger.info("sync_confirmed", session_id=session_id)
        return self._run(session_id, catalog)

    def abort(self, session_id: str) -> BatchSummary:
        """User declined the overwrite: back to IDLE, nothing uploaded."""
        state = self.store.update(session_id, _leave_confirming, BatchStatus.IDLE, record_history=False)
        logger.info("sync_aborted", session_id=session_id)
        return BatchSummary(status=BatchStatus.IDLE, pending_count=len(state.pending_records()))

    def cancel(self, session_id: str) -> BatchSummary:
        """
        Stop a running batch before its next record.

        The record being uploaded finishes; queued records stay pending.
        """
        state = self.store.get(session_id)
        event = self._cancel_events.get(session_id)
        if state.batch_status != BatchStatus.RUNNING or event is None:
            raise InvalidStatusTransitionError(state.batch_status.value, "cancelled")

        event.set()
        logger.info("sync_cancel_requested", session_id=session_id)
        return BatchSummary(
            status=BatchStatus.RUNNING,
            cancelled=True,
            pending_count=len(state.pending_records()),
        )

    # ===================
    # EXECUTION
    # ===================

    def _run(self, session_id: str, catalog: CatalogService) -> BatchSummary:
        """Upload every pending record of a session already claimed as RUNNING."""
        with self._lock:
            if session_id in self._cancel_events:
                raise BatchAlreadyRunningError(session_id)
            cancel_event = threading.Event()
            self._cancel_events[session_id] = cancel_event

        try:
            state = self.store.get(session_id)
            pending = state.pending_records()
            if not pending:
                self.store.update(session_id, _with_status, BatchStatus.IDLE, record_history=False)
                raise NothingSelectedError()

            self.store.clear_history(session_id)

            normalizer = KeyNormalizer(get_supplier_profile(state.supplier))
            logger.info("sync_started", session_id=session_id, records=len(pending))

            results: list[BatchResult] = []
            cancelled = False
            for matched in pending:
                if cancel_event.is_set():
                    cancelled = True
                    break

                result = self._sync_record(matched, catalog, normalizer)
                results.append(result)
                self.store.update(session_id, _record_outcome, matched.key, result, record_history=False)
        finally:
            with self._lock:
                self._cancel_events.pop(session_id, None)

        state = self.store.update(session_id, _with_status, BatchStatus.DONE, record_history=False)

        summary = BatchSummary(
            status=BatchStatus.DONE,
            pending_count=len(state.pending_records()),
            succeeded=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
            assets_uploaded=sum(r.assets_uploaded for r in results),
            cancelled=cancelled,
            results=results,
        )
        logger.info(
            "sync_completed",
            session_id=session_id,
            succeeded=summary.succeeded,
            failed=summary.failed,
            assets_uploaded=summary.assets_uploaded,
            cancelled=cancelled,
        )
        return summary

    def _sync_record(
        self,
        matched: MatchedRecord,
        catalog: CatalogService,
        normalizer: KeyNormalizer,
    ) -> BatchResult:
        """Re-resolve the target, then upload every asset in order."""
        record = matched.record
        total = len(matched.assets)

        def failure(reason: str, external_id: Optional[int] = None) -> BatchResult:
            logger.warning("sync_record_failed", record_key=matched.key, error=reason)
            return BatchResult(
                record_key=matched.key,
                display_name=record.display_name or matched.key,
                success=False,
                assets_total=total,
                external_id=external_id,
                error=reason,
            )

        try:
            candidates = catalog.lookup(record.reference_code, record.variant_label)
        except CatalogServiceError as e:
            return failure(e.message)
        except Exception as e:
            logger.error("sync_lookup_error", record_key=matched.key, error_type=type(e).__name__)
            return failure(str(e))

        target = select_best_candidate(candidates, record.variant_label, normalizer)
        if target is None:
            return failure(f"No catalog product found for {matched.key}")

        uploaded = 0
        errors: list[str] = []
        for position, asset in enumerate(matched.assets, start=1):
            try:
                outcome = catalog.upload_asset(
                    target.external_id,
                    asset.payload,
                    upload_display_name(record, asset, position),
                    sequence=position,
                    is_primary=position == 1,
                )
            except Exception as e:
                logger.error(
                    "asset_upload_failed",
                    record_key=matched.key,
                    filename=asset.filename,
                    error_type=type(e).__name__,
                )
                errors.append(f"{asset.filename}: {e}")
                continue

            if outcome.success:
                uploaded += 1
            else:
                logger.warning(
                    "asset_upload_failed",
                    record_key=matched.key,
                    filename=asset.filename,
                    error=outcome.error,
                )
                errors.append(f"{asset.filename}: {outcome.error}")

        if uploaded == 0:
            return failure("; ".join(errors) or "No asset uploaded", target.external_id)

        logger.info(
            "sync_record_committed",
            record_key=matched.key,
            external_id=target.external_id,
            uploaded=uploaded,
            total=total,
        )
        return BatchResult(
            record_key=matched.key,
            display_name=record.display_name or matched.key,
            success=True,
            assets_uploaded=uploaded,
            assets_total=total,
            external_id=target.external_id,
            error="; ".join(errors) or None,
        )


_sync_service: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    """Get or create the SyncService instance."""
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService()
    return _sync_service
