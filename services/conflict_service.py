"""
Conflict checker: detects catalog targets that already hold images.

This is the guard against silently overwriting existing catalog images.
A record only auto-selects when it has assets and no existing images
were reported for its target. Lookups are read-only and independent, so they run
with bounded concurrency; a failed lookup marks the record UNKNOWN and
is retried by `recheck`.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional
import structlog

from config import settings
from config.supplier_profiles import SupplierProfile, get_supplier_profile
from exceptions import CatalogServiceError
from integrations.catalog_service import CatalogService
from models.catalog import ConflictStatus, ExternalState, MatchedRecord
from models.sync import CatalogCandidate
from services.key_normalizer import KeyNormalizer

logger = structlog.get_logger(__name__)


def select_best_candidate(
    candidates: list[CatalogCandidate],
    variant_label: str,
    normalizer: KeyNormalizer,
) -> Optional[CatalogCandidate]:
    """First candidate whose variant equals the label, else the first returned."""
    if not candidates:
        return None
    for candidate in candidates:
        if candidate.variant_label and normalizer.equals(candidate.variant_label, variant_label):
            return candidate
    return candidates[0]


def external_state_for(candidate: Optional[CatalogCandidate]) -> ExternalState:
    if candidate is None:
        return ExternalState(status=ConflictStatus.NOT_FOUND)
    return ExternalState(
        status=ConflictStatus.EXISTING if candidate.has_existing_assets else ConflictStatus.CLEAR,
        has_existing_assets=candidate.has_existing_assets,
        existing_count=candidate.existing_asset_count,
        external_id=candidate.external_id,
        external_name=candidate.name,
    )


class ConflictChecker:
    """Annotates matched records with their catalog state."""

    def __init__(
        self,
        catalog: CatalogService,
        profile: SupplierProfile,
        max_workers: Optional[int] = None,
    ):
        self.catalog = catalog
        self.normalizer = KeyNormalizer(profile)
        self.max_workers = max_workers or settings.lookup_concurrency

    def resolve(self, matched: MatchedRecord) -> ExternalState:
        """
        Look up one record. Never raises: failures become UNKNOWN.
        """
        record = matched.record
        try:
            candidates = self.catalog.lookup(record.reference_code, record.variant_label)
        except CatalogServiceError as e:
            logger.warning("lookup_failed", record_key=record.unique_key, error=e.message)
            return ExternalState(status=ConflictStatus.UNKNOWN, error=e.message)
        except Exception as e:
            logger.error(
                "lookup_failed",
                record_key=record.unique_key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ExternalState(status=ConflictStatus.UNKNOWN, error=str(e))

        best = select_best_candidate(candidates, record.variant_label, self.normalizer)
        return external_state_for(best)

    def check(self, records: Iterable[MatchedRecord]) -> list[MatchedRecord]:
        """
        Check every record with assets and apply the default selection.

        Records without assets are returned unchanged (UNCHECKED, unselected).
        Order is preserved.

        Returns:
            New MatchedRecord values
        """
        records = list(records)
        targets = [r for r in records if r.has_assets and not r.committed]
        states = self._resolve_all(targets)

        checked: list[MatchedRecord] = []
        for record in records:
            state = states.get(record.key)
            if state is None:
                checked.append(record)
                continue
            updated = record.model_copy(update={"external": state})
            checked.append(updated.model_copy(update={"selected": updated.default_selected}))

        self._log_summary("conflict_check_completed", checked, len(targets))
        return checked

    def recheck(self, records: Iterable[MatchedRecord]) -> list[MatchedRecord]:
        """
        Retry lookups that failed or never ran.

        A record the user already selected stays selected; the batch
        confirmation gate still catches existing images.
        """
        records = list(records)
        targets = [
            r for r in records
            if r.has_assets and not r.committed
            and r.external.status in (ConflictStatus.UNKNOWN, ConflictStatus.UNCHECKED)
        ]
        states = self._resolve_all(targets)

        checked: list[MatchedRecord] = []
        for record in records:
            state = states.get(record.key)
            if state is None:
                checked.append(record)
                continue
            updated = record.model_copy(update={"external": state})
            selected = record.selected or updated.default_selected
            checked.append(updated.model_copy(update={"selected": selected}))

        self._log_summary("conflict_recheck_completed", checked, len(targets))
        return checked

    def _resolve_all(self, targets: list[MatchedRecord]) -> dict[str, ExternalState]:
        if not targets:
            return {}
        workers = min(self.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            states = list(pool.map(self.resolve, targets))
        return {record.key: state for record, state in zip(targets, states)}

    def _log_summary(self, event: str, records: list[MatchedRecord], looked_up: int) -> None:
        logger.info(
            event,
            looked_up=looked_up,
            existing=sum(1 for r in records if r.external.status == ConflictStatus.EXISTING),
            unknown=sum(1 for r in records if r.external.status == ConflictStatus.UNKNOWN),
            not_found=sum(1 for r in records if r.external.status == ConflictStatus.NOT_FOUND),
            selected=sum(1 for r in records if r.selected),
        )


def get_conflict_checker(catalog: CatalogService, supplier: Optional[str] = None) -> ConflictChecker:
    """Build a ConflictChecker for a catalog context and supplier profile."""
    return ConflictChecker(catalog, get_supplier_profile(supplier))
