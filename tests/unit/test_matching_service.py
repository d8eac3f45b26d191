"""
Unit tests for the two-pass matching engine.
"""

import pytest

from parsers.filename_parser import FilenameKeyExtractor
from services.matching_service import MatchingService, dedupe_records, get_matching_service
from tests.factories import AssetFactory, RecordFactory


@pytest.fixture
def matcher(emile_profile):
    return MatchingService(emile_profile)


@pytest.fixture
def build(emile_profile):
    """Build assets from filenames through the real extractor."""
    extractor = FilenameKeyExtractor(emile_profile)

    def _build(*filenames):
        return [extractor.build_asset(name, b"img") for name in filenames]

    return _build


def _filenames(matched):
    return [a.filename for a in matched.assets]


# ===================
# SCENARIOS
# ===================

class TestExclusiveMatching:
    """Pass 1: product photos."""

    def test_matches_reference_and_variant(self, matcher, build):
        """Two lizeron photos attach in order; the creme photo stays unmatched."""
        # Arrange
        records = [RecordFactory.create(reference_code="AD207B", variant_code="LIZERON")]
        assets = build("AD207B-lizeron-2.jpg", "AD019-creme-1.jpg", "AD207B-lizeron-1.jpg")

        # Act
        result = matcher.match(records, assets)

        # Assert
        assert _filenames(result.records[0]) == ["AD207B-lizeron-1.jpg", "AD207B-lizeron-2.jpg"]
        assert [a.filename for a in result.unmatched] == ["AD019-creme-1.jpg"]
        assert result.matched_count == 1

    def test_variant_label_or_code_matches(self, matcher, build):
        records = [RecordFactory.create(reference_code="AD207B", variant_code="LZ", variant_label="Lizeron")]

        result = matcher.match(records, build("AD207B-lizeron-1.jpg", "AD207B-lz-2.jpg"))

        assert _filenames(result.records[0]) == ["AD207B-lizeron-1.jpg", "AD207B-lz-2.jpg"]

    def test_fuzzy_variant_with_qualifier(self, matcher, build):
        """Catalog-only qualifier on the record label still matches the filename."""
        records = [RecordFactory.create(reference_code="AD110", variant_code="VICHY", variant_label="Vichy Rouge")]

        result = matcher.match(records, build("AD110-vichy-1.jpg"))

        assert _filenames(result.records[0]) == ["AD110-vichy-1.jpg"]

    def test_alias_variant(self, matcher, build):
        records = [RecordFactory.create(reference_code="AD300", variant_code="GARIGUETTE")]

        result = matcher.match(records, build("AD300-guariguette-1.jpg"))

        assert len(result.records[0].assets) == 1

    def test_reference_must_match_exactly(self, matcher, build):
        records = [RecordFactory.create(reference_code="AD207", variant_code="LIZERON")]

        result = matcher.match(records, build("AD207B-lizeron-1.jpg"))

        assert result.records[0].assets == ()
        assert len(result.unmatched) == 1

    def test_first_record_in_sorted_order_wins(self, matcher):
        """Asset both records could claim goes to the first in (reference, variant) order."""
        # Arrange
        second = RecordFactory.create(reference_code="AD100", variant_code="ROSE-CLAIR")
        first = RecordFactory.create(reference_code="AD100", variant_code="ROSE")
        asset = AssetFactory.create(reference_code="AD100", variant_token="rose")

        # Act
        result = matcher.match([second, first], [asset])

        # Assert
        by_key = {r.key: r for r in result.records}
        assert by_key["AD100_ROSE"].assets == (asset,)
        assert by_key["AD100_ROSE-CLAIR"].assets == ()

    def test_unparsed_assets_stay_unmatched(self, matcher, build):
        records = [RecordFactory.create(reference_code="AD207B", variant_code="LIZERON")]

        result = matcher.match(records, build("IMG-2034.jpg"))

        assert [a.filename for a in result.unmatched] == ["IMG-2034.jpg"]


class TestSharedMatching:
    """Pass 2: lifestyle photos."""

    def test_shared_asset_attaches_to_every_named_reference(self, matcher, build):
        """One shared photo joins both records and never reaches the unmatched pool."""
        # Arrange
        records = [
            RecordFactory.create(reference_code="AD019", variant_code="CREME"),
            RecordFactory.create(reference_code="AD009", variant_code="CREME"),
        ]
        assets = build("EMILE IDA E26 AD019 AD009 creme (1).jpg")

        # Act
        result = matcher.match(records, assets)

        # Assert
        for matched in result.records:
            assert _filenames(matched) == ["EMILE IDA E26 AD019 AD009 creme (1).jpg"]
        assert result.unmatched == []

    def test_shared_asset_with_other_variant_not_attached(self, matcher, build):
        records = [RecordFactory.create(reference_code="AD019", variant_code="CREME")]

        result = matcher.match(records, build("EMILE IDA AD019 lizeron (1).jpg"))

        assert result.records[0].assets == ()

    def test_shared_asset_without_variant_attaches_to_all_variants(self, matcher, build):
        records = [
            RecordFactory.create(reference_code="AD019", variant_code="CREME"),
            RecordFactory.create(reference_code="AD019", variant_code="ROSE"),
        ]

        result = matcher.match(records, build("EMILE IDA E25 AD019 (2).jpg"))

        assert all(len(r.assets) == 1 for r in result.records)

    def test_shared_assets_follow_exclusive_ones(self, matcher, build):
        """Shared photos come after product photos and the list stays ascending."""
        # Arrange
        records = [RecordFactory.create(reference_code="AD019", variant_code="CREME")]
        assets = build(
            "EMILE IDA AD019 creme (1).jpg",
            "AD019-creme-2.jpg",
            "AD019-creme-1.jpg",
        )

        # Act
        matched = matcher.match(records, assets).records[0]

        # Assert
        assert _filenames(matched) == [
            "AD019-creme-1.jpg",
            "AD019-creme-2.jpg",
            "EMILE IDA AD019 creme (1).jpg",
        ]
        assert [a.sequence_number for a in matched.assets] == [1, 2, 3]


# ===================
# PROPERTIES
# ===================

class TestMatchingProperties:

    @pytest.fixture
    def inputs(self, build):
        records = [
            RecordFactory.create(reference_code="AD019", variant_code="CREME"),
            RecordFactory.create(reference_code="AD009", variant_code="CREME"),
            RecordFactory.create(reference_code="AD207B", variant_code="LIZERON"),
            RecordFactory.create(reference_code="AD207B", variant_code="TULIPE"),
        ]
        assets = build(
            "AD019-creme-3.jpg",
            "AD019-creme-1.jpg",
            "AD009-creme-BB-01.jpg",
            "AD207B-lizeron-2.jpg",
            "AD207B-lizeron-1.jpg",
            "AD207B-abricot-1.jpg",
            "EMILE IDA E26 AD019 AD009 creme (1).jpg",
            "EMILE IDA AD207B (4).jpg",
            "IMG-2034.jpg",
        )
        return records, assets

    def test_exclusive_asset_in_at_most_one_record(self, matcher, inputs):
        result = matcher.match(*inputs)

        owners: dict[str, int] = {}
        for matched in result.records:
            for asset in matched.assets:
                if not asset.is_shared:
                    owners[asset.filename] = owners.get(asset.filename, 0) + 1
        assert all(count == 1 for count in owners.values())
        assert not set(owners) & {a.filename for a in result.unmatched}

    def test_asset_lists_ascending(self, matcher, inputs):
        result = matcher.match(*inputs)

        for matched in result.records:
            sequences = [a.sequence_number for a in matched.assets]
            assert sequences == sorted(sequences)

    def test_idempotent(self, matcher, inputs):
        """Re-running on the same inputs yields the same result."""
        first = matcher.match(*inputs)
        second = matcher.match(*inputs)

        assert first.records == second.records
        assert first.unmatched == second.unmatched

    def test_nothing_selected_after_matching(self, matcher, inputs):
        """Selection is applied by the session, not the matcher."""
        result = matcher.match(*inputs)

        assert not any(r.selected for r in result.records)

    def test_records_sorted(self, matcher, inputs):
        result = matcher.match(*inputs)

        keys = [(r.record.reference_code, r.record.variant_code) for r in result.records]
        assert keys == sorted(keys)


class TestDedupeRecords:

    def test_first_occurrence_wins(self):
        first = RecordFactory.create(reference_code="AD019", variant_code="CREME", display_name="First")
        duplicate = RecordFactory.create(reference_code="AD019", variant_code="CREME", display_name="Second")

        result = dedupe_records([first, duplicate])

        assert result == [first]

    def test_matcher_drops_duplicates(self, matcher):
        records = [RecordFactory.create(reference_code="AD019", variant_code="CREME") for _ in range(3)]

        result = matcher.match(records, [])

        assert len(result.records) == 1


def test_get_matching_service_uses_profile():
    service = get_matching_service("emile_et_ida")

    assert service.profile.name == "emile_et_ida"
