"""
Matching service: pairs catalog records with image assets.

Two greedy passes over records sorted by (reference_code, variant_code):

1. Exclusive assets: product photos with the same reference and a
   fuzzy-equal variant. A matched photo leaves the pool, so when two
   records could claim it the first record in sorted order wins.
2. Shared assets: lifestyle photos naming the record's reference, with
   no variant or a fuzzy-equal one. They never leave the pool.

Product photos left in the pool form the unmatched set for manual review.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional
import structlog

from config.supplier_profiles import SupplierProfile, get_supplier_profile
from models.catalog import Asset, CatalogRecord, MatchedRecord
from services.key_normalizer import KeyNormalizer

logger = structlog.get_logger(__name__)


@dataclass
class MatchResult:
    """Output of one matching run."""
    records: list[MatchedRecord] = field(default_factory=list)
    unmatched: list[Asset] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.records if r.has_assets)


def dedupe_records(records: Iterable[CatalogRecord]) -> list[CatalogRecord]:
    """Drop repeated unique keys; the first occurrence wins."""
    seen: dict[str, CatalogRecord] = {}
    for record in records:
        seen.setdefault(record.unique_key, record)
    return list(seen.values())


def _pool_order(asset: Asset) -> tuple:
    return (asset.reference_code, asset.sequence_number, asset.filename)


def _by_sequence(assets: list[Asset]) -> list[Asset]:
    return sorted(assets, key=lambda a: (a.sequence_number, a.filename))


class MatchingService:
    """Assigns assets to records for one supplier profile."""

    def __init__(self, profile: SupplierProfile):
        self.profile = profile
        self.normalizer = KeyNormalizer(profile)

    def variant_matches(self, record: CatalogRecord, token: str) -> bool:
        return (
            self.normalizer.equals(token, record.variant_label)
            or self.normalizer.equals(token, record.variant_code)
        )

    def match(
        self,
        records: Iterable[CatalogRecord],
        assets: Iterable[Asset],
    ) -> MatchResult:
        """
        Run both passes.

        Args:
            records: Catalog records (duplicates by unique key are dropped)
            assets: All assets from the file selection

        Returns:
            MatchResult with one MatchedRecord per record (in sorted order,
            nothing selected yet) and the unmatched product assets
        """
        ordered = sorted(
            dedupe_records(records),
            key=lambda r: (r.reference_code, r.variant_code),
        )
        assets = list(assets)
        pool = sorted((a for a in assets if not a.is_shared), key=_pool_order)
        shared = sorted((a for a in assets if a.is_shared), key=_pool_order)

        logger.info(
            "matching_started",
            supplier=self.profile.name,
            records=len(ordered),
            product_assets=len(pool),
            shared_assets=len(shared),
        )

        # Pass 1: exclusive assets
        consumed: set[str] = set()
        exclusive: dict[str, list[Asset]] = {}
        for record in ordered:
            taken: list[Asset] = []
            for asset in pool:
                if asset.filename in consumed or not asset.parsed:
                    continue
                if asset.reference_code != record.reference_code:
                    continue
                if not self.variant_matches(record, asset.variant_token):
                    continue
                taken.append(asset)
                consumed.add(asset.filename)
            exclusive[record.unique_key] = _by_sequence(taken)

        # Pass 2: shared assets
        matched: list[MatchedRecord] = []
        for record in ordered:
            lifestyle = [
                asset for asset in shared
                if record.reference_code in asset.reference_tokens
                and (not asset.variant_token or self.variant_matches(record, asset.variant_token))
            ]
            combined = _append_shared(exclusive[record.unique_key], _by_sequence(lifestyle))
            matched.append(MatchedRecord(record=record, assets=tuple(combined)))

        unmatched = [a for a in pool if a.filename not in consumed]
        result = MatchResult(records=matched, unmatched=unmatched)

        logger.info(
            "matching_completed",
            supplier=self.profile.name,
            records_with_assets=result.matched_count,
            records_without_assets=len(matched) - result.matched_count,
            unmatched_assets=len(unmatched),
        )
        return result


def _append_shared(exclusive: list[Asset], shared: list[Asset]) -> list[Asset]:
    """
    Append shared assets after the exclusive ones.

    A shared asset numbered below the previous entry gets the next free
    sequence number in this record's copy, so the list stays ascending.
    """
    combined = list(exclusive)
    for asset in shared:
        previous: Optional[int] = combined[-1].sequence_number if combined else None
        if previous is not None and asset.sequence_number < previous:
            asset = asset.model_copy(update={"sequence_number": previous + 1})
        combined.append(asset)
    return combined


def get_matching_service(supplier: Optional[str] = None) -> MatchingService:
    """Build a MatchingService for a supplier profile."""
    return MatchingService(get_supplier_profile(supplier))
