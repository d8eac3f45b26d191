"""
Session store for the editable matching result.

Transitions are plain functions: they take a SessionState and return a
new one, never changing the input. The store keeps the current value per
session, a short undo history, and drops sessions untouched for longer
than the TTL. Single-server, in memory.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
import structlog

from config import settings
from config.supplier_profiles import get_supplier_profile
from exceptions import (
    AssetAlreadyAssignedError,
    AssetNotFoundError,
    BatchAlreadyRunningError,
    BatchAwaitingConfirmationError,
    InvalidAssetIndexError,
    RecordAlreadyCommittedError,
    RecordHasNoAssetsError,
    RecordNotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from integrations.catalog_service import CatalogService
from models.catalog import Asset, CatalogRecord, ConflictStatus, ExternalState, MatchedRecord
from models.session import ConflictFilter, MatchFilter, SessionState, SessionStats
from models.sync import BatchStatus
from parsers.filename_parser import FilenameKeyExtractor, is_image_filename
from services.conflict_service import ConflictChecker
from services.matching_service import MatchResult, MatchingService
from utils.text_utils import fold_text

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 20


# ===================
# TRANSITIONS
# ===================

def build_state(session_id: str, supplier: str, result: MatchResult) -> SessionState:
    """Initial state from a matching run, default selection applied."""
    records = {
        r.key: r.model_copy(update={"selected": r.default_selected})
        for r in result.records
    }
    return SessionState(
        session_id=session_id,
        supplier=supplier,
        records=records,
        unmatched=tuple(result.unmatched),
    )


def _next(state: SessionState, **changes) -> SessionState:
    return state.model_copy(update={**changes, "revision": state.revision + 1})


def _get_record(state: SessionState, key: str) -> MatchedRecord:
    record = state.records.get(key)
    if record is None:
        raise RecordNotFoundError(key)
    return record


def _editable_record(state: SessionState, key: str) -> MatchedRecord:
    record = _get_record(state, key)
    if record.committed:
        raise RecordAlreadyCommittedError(key)
    return record


def _with_records(state: SessionState, *updated: MatchedRecord, **changes) -> SessionState:
    records = dict(state.records)
    for record in updated:
        records[record.key] = record
    return _next(state, records=records, **changes)


def _renumbered(assets: list[Asset]) -> tuple[Asset, ...]:
    return tuple(
        a if a.sequence_number == position else a.model_copy(update={"sequence_number": position})
        for position, a in enumerate(assets, start=1)
    )


def _owner_of(state: SessionState, filename: str, skip: Optional[str] = None) -> Optional[str]:
    for key, record in state.records.items():
        if key == skip:
            continue
        if any(a.filename == filename and not a.is_shared for a in record.assets):
            return key
    return None


def toggle_select(state: SessionState, key: str) -> SessionState:
    record = _editable_record(state, key)
    if not record.selected and not record.has_assets:
        raise RecordHasNoAssetsError(key)
    return _with_records(state, record.model_copy(update={"selected": not record.selected}))


def select_all(state: SessionState) -> SessionState:
    """Select every non-committed record that has assets."""
    updated = [
        r.model_copy(update={"selected": r.has_assets and not r.committed})
        for r in state.records.values()
    ]
    return _with_records(state, *updated)


def deselect_all(state: SessionState) -> SessionState:
    updated = [
        r.model_copy(update={"selected": False})
        for r in state.records.values() if r.selected
    ]
    return _with_records(state, *updated)


def add_asset(state: SessionState, key: str, asset: Asset) -> SessionState:
    """
    Append an asset to a record and select it.

    The asset is numbered after the record's last asset. If it was in the
    unmatched pool it leaves the pool.
    """
    record = _editable_record(state, key)

    if any(a.filename == asset.filename for a in record.assets):
        raise AssetAlreadyAssignedError(asset.filename, key)
    if not asset.is_shared:
        owner = _owner_of(state, asset.filename, skip=key)
        if owner is not None:
            raise AssetAlreadyAssignedError(asset.filename, owner)

    if record.assets:
        asset = asset.model_copy(update={"sequence_number": record.assets[-1].sequence_number + 1})

    updated = record.model_copy(update={
        "assets": record.assets + (asset,),
        "selected": True,
        "last_error": None,
    })
    unmatched = tuple(a for a in state.unmatched if a.filename != asset.filename)
    return _with_records(state, updated, unmatched=unmatched)


def assign_unmatched(state: SessionState, key: str, filename: str) -> SessionState:
    """Move an asset from the unmatched pool onto a record."""
    asset = next((a for a in state.unmatched if a.filename == filename), None)
    if asset is None:
        raise AssetNotFoundError(filename)
    return add_asset(state, key, asset)


def remove_asset(state: SessionState, key: str, filename: str) -> SessionState:
    """
    Remove an asset from a record.

    An exclusive asset no other record holds goes back to the unmatched
    pool. A record left without assets is deselected.
    """
    record = _editable_record(state, key)
    removed = next((a for a in record.assets if a.filename == filename), None)
    if removed is None:
        raise AssetNotFoundError(filename)

    remaining = tuple(a for a in record.assets if a.filename != filename)
    updated = record.model_copy(update={
        "assets": remaining,
        "selected": record.selected and bool(remaining),
    })

    unmatched = state.unmatched
    if not removed.is_shared and _owner_of(state, filename, skip=key) is None:
        unmatched = unmatched + (removed,)
    return _with_records(state, updated, unmatched=unmatched)


def move_asset(state: SessionState, key: str, from_index: int, to_index: int) -> SessionState:
    """
    Reorder a record's assets. Position 0 is the cover image.

    Sequence numbers are renumbered to list positions (1..n).
    """
    record = _editable_record(state, key)
    size = len(record.assets)
    for index in (from_index, to_index):
        if not 0 <= index < size:
            raise InvalidAssetIndexError(index, size)

    assets = list(record.assets)
    moved = assets.pop(from_index)
    assets.insert(to_index, moved)
    return _with_records(state, record.model_copy(update={"assets": _renumbered(assets)}))


def apply_records(state: SessionState, records: list[MatchedRecord]) -> SessionState:
    """
    Merge conflict-check results into the current records.

    Only `external` and `selected` are taken from `records`; assets and
    flags come from `state`, so edits made while lookups ran are kept.
    """
    merged = []
    for checked in records:
        current = state.records.get(checked.key)
        if current is None:
            continue
        selected = checked.selected and current.has_assets and not current.committed
        merged.append(current.model_copy(update={
            "external": checked.external,
            "selected": selected,
        }))
    return _with_records(state, *merged)


def mark_committed(state: SessionState, key: str) -> SessionState:
    record = _get_record(state, key)
    return _with_records(state, record.model_copy(update={
        "committed": True,
        "selected": False,
        "last_error": None,
    }))


def mark_failed(state: SessionState, key: str, reason: str) -> SessionState:
    """Record stays pending (not committed), deselected, with the reason."""
    record = _get_record(state, key)
    return _with_records(state, record.model_copy(update={
        "selected": False,
        "last_error": reason,
    }))


def reset_committed(state: SessionState) -> SessionState:
    """
    Explicit session reset: committed records become editable again.

    Their catalog state is cleared back to UNCHECKED because this session
    put images on those targets; the next batch looks them up again.
    """
    updated = []
    for record in state.records.values():
        changes = {"committed": False, "last_error": None}
        if record.committed:
            changes["external"] = ExternalState()
        cleared = record.model_copy(update=changes)
        updated.append(cleared.model_copy(update={"selected": cleared.default_selected}))
    return _with_records(state, *updated, results=(), batch_status=BatchStatus.IDLE)


# ===================
# READ-ONLY VIEWS
# ===================

def filter_records(
    state: SessionState,
    match_status: MatchFilter = MatchFilter.ALL,
    conflict_status: ConflictFilter = ConflictFilter.ANY,
    query: Optional[str] = None,
) -> list[MatchedRecord]:
    """Filter by match status, conflict status and free text. Never mutates."""
    needle = fold_text(query)
    result = []

    for record in state.records.values():
        if match_status == MatchFilter.WITH_ASSETS and not record.has_assets:
            continue
        if match_status == MatchFilter.WITHOUT_ASSETS and record.has_assets:
            continue
        if conflict_status != ConflictFilter.ANY and record.external.status.value != conflict_status.value:
            continue
        if needle:
            haystack = (
                record.record.reference_code,
                record.record.variant_code,
                record.record.variant_label,
                record.record.display_name,
            )
            if not any(needle in fold_text(text) for text in haystack):
                continue
        result.append(record)

    return result


def compute_stats(state: SessionState) -> SessionStats:
    records = state.record_list()
    return SessionStats(
        total_records=len(records),
        with_assets=sum(1 for r in records if r.has_assets),
        without_assets=sum(1 for r in records if not r.has_assets),
        existing_external=sum(1 for r in records if r.external.has_existing_assets),
        unknown_external=sum(1 for r in records if r.external.status == ConflictStatus.UNKNOWN),
        selected=sum(1 for r in records if r.pending),
        committed=sum(1 for r in records if r.committed),
        total_assets=sum(len(r.assets) for r in records),
        unmatched_assets=len(state.unmatched),
    )


# ===================
# STORE
# ===================

def _ensure_editable(state: SessionState) -> None:
    if state.batch_status == BatchStatus.RUNNING:
        raise BatchAlreadyRunningError(state.session_id)
    if state.batch_status == BatchStatus.CONFIRMING:
        raise BatchAwaitingConfirmationError(state.session_id)


@dataclass
class _Entry:
    state: SessionState
    expires_at: datetime
    history: list[SessionState] = field(default_factory=list)


class SessionStore:
    """Current SessionState per session id, replaced wholesale on each change."""

    def __init__(
        self,
        ttl_minutes: Optional[int] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.ttl = timedelta(minutes=ttl_minutes or settings.session_ttl_minutes)
        self.history_limit = history_limit
        self._sessions: dict[str, _Entry] = {}
        self._lock = threading.RLock()

    def create(self, supplier: str, result: MatchResult) -> SessionState:
        """Store a new session built from a matching run."""
        session_id = str(uuid.uuid4())
        state = build_state(session_id, supplier, result)
        with self._lock:
            self._cleanup_expired()
            self._sessions[session_id] = _Entry(state=state, expires_at=datetime.now() + self.ttl)
        logger.info("session_created", session_id=session_id, supplier=supplier, records=len(state.records))
        return state

    def _entry(self, session_id: str) -> _Entry:
        entry = self._sessions.get(session_id)
        if entry is None or datetime.now() > entry.expires_at:
            self._sessions.pop(session_id, None)
            raise SessionNotFoundError(session_id)
        entry.expires_at = datetime.now() + self.ttl
        return entry

    def get(self, session_id: str) -> SessionState:
        return self._entry(session_id).state

    def replace(
        self,
        session_id: str,
        state: SessionState,
        record_history: bool = True,
    ) -> SessionState:
        """Swap in a new state value."""
        with self._lock:
            entry = self._entry(session_id)
            if record_history:
                entry.history.append(entry.state)
                del entry.history[:-self.history_limit]
            entry.state = state
            return state

    def update(
        self,
        session_id: str,
        transition: Callable[..., SessionState],
        *args,
        record_history: bool = True,
    ) -> SessionState:
        """
        Run a transition against the current value and store the result.

        Read, transition and write happen under the store lock, so two
        requests never build on the same stale value.
        """
        with self._lock:
            new_state = transition(self.get(session_id), *args)
            logger.debug(
                "session_updated",
                session_id=session_id,
                transition=transition.__name__,
                revision=new_state.revision,
            )
            return self.replace(session_id, new_state, record_history=record_history)

    def apply(
        self,
        session_id: str,
        transition: Callable[..., SessionState],
        *args,
    ) -> SessionState:
        """
        Run a user edit and store the result.

        Raises:
            BatchAlreadyRunningError: While a batch is synchronizing this session
            BatchAwaitingConfirmationError: While an overwrite confirmation is open
        """
        with self._lock:
            _ensure_editable(self.get(session_id))
            return self.update(session_id, transition, *args)

    def undo(self, session_id: str) -> SessionState:
        """Step back to the previous user edit."""
        with self._lock:
            entry = self._entry(session_id)
            _ensure_editable(entry.state)
            if not entry.history:
                raise ValidationError(
                    message="Nothing to undo",
                    code="NOTHING_TO_UNDO",
                    details={"session_id": session_id}
                )
            previous = entry.history.pop()
            entry.state = previous.model_copy(update={"revision": entry.state.revision + 1})
            return entry.state

    def clear_history(self, session_id: str) -> None:
        with self._lock:
            self._entry(session_id).history.clear()

    def delete(self, session_id: str) -> None:
        """Discard a session (explicit restart)."""
        with self._lock:
            self._sessions.pop(session_id, None)
        logger.info("session_deleted", session_id=session_id)

    def _cleanup_expired(self) -> None:
        now = datetime.now()
        expired = [k for k, entry in self._sessions.items() if now > entry.expires_at]
        for k in expired:
            del self._sessions[k]


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the SessionStore instance."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store


# ===================
# SESSION LIFECYCLE
# ===================

def open_session(
    supplier: Optional[str],
    records: Iterable[CatalogRecord],
    files: Iterable[tuple[str, bytes]],
    catalog: Optional[CatalogService] = None,
    store: Optional[SessionStore] = None,
) -> SessionState:
    """
    Extract, match and (with a catalog) conflict-check a file selection.

    Without a catalog every record stays UNCHECKED; the batch start
    checks them before anything is uploaded.
    """
    profile = get_supplier_profile(supplier)
    assets = FilenameKeyExtractor(profile).build_assets(files)
    result = MatchingService(profile).match(records, assets)

    if catalog is not None:
        checked = ConflictChecker(catalog, profile).check(result.records)
        result = MatchResult(records=checked, unmatched=result.unmatched)

    return (store or get_session_store()).create(profile.name, result)


def attach_file(
    session_id: str,
    record_key: str,
    filename: str,
    payload: bytes,
    store: Optional[SessionStore] = None,
) -> SessionState:
    """Manually add a newly picked file to a record."""
    store = store or get_session_store()
    state = store.get(session_id)
    if not is_image_filename(filename):
        raise ValidationError(
            message="Only image files can be attached",
            code="UNSUPPORTED_FILE_TYPE",
            details={"filename": filename}
        )
    asset = FilenameKeyExtractor(get_supplier_profile(state.supplier)).build_asset(filename, payload)
    return store.apply(session_id, add_asset, record_key, asset)


def recheck_session(
    session_id: str,
    catalog: CatalogService,
    store: Optional[SessionStore] = None,
) -> SessionState:
    """Retry lookups that failed or never ran."""
    store = store or get_session_store()
    state = store.get(session_id)
    checker = ConflictChecker(catalog, get_supplier_profile(state.supplier))
    return store.apply(session_id, apply_records, checker.recheck(state.record_list()))
