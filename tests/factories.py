"""
Test data factories.

Uses factory pattern to generate consistent test data.
"""

from typing import Optional

from models.catalog import Asset, AssetCategory, CatalogRecord


class RecordFactory:
    """
    Factory for creating test CatalogRecord values.

    Usage:
        # Create with defaults
        record = RecordFactory.create()

        # Create with overrides
        record = RecordFactory.create(reference_code="AD207B", variant_code="LIZERON")

        # Create multiple
        records = RecordFactory.create_batch(5)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        reference_code: Optional[str] = None,
        variant_code: Optional[str] = None,
        variant_label: str = "",
        display_name: Optional[str] = None,
        category: str = "Robes",
    ) -> CatalogRecord:
        """
        Create a single record.

        Args:
            reference_code: Supplier reference (auto-generated if not provided)
            variant_code: Variant/color code (defaults to CREME)
            variant_label: Human label (defaults to the variant code)
            display_name: Product name (auto-generated if not provided)
            category: Product category

        Returns:
            CatalogRecord
        """
        counter = cls._next_counter()
        reference_code = reference_code or f"AD{900 + counter}"
        variant_code = variant_code or "CREME"

        return CatalogRecord(
            reference_code=reference_code,
            variant_code=variant_code,
            variant_label=variant_label,
            display_name=display_name or f"Robe {reference_code} {variant_code.title()}",
            category=category,
        )

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list[CatalogRecord]:
        """Create multiple records with distinct references."""
        return [cls.create(**overrides) for _ in range(count)]


class AssetFactory:
    """
    Factory for creating test Asset values without going through the parser.

    Usage:
        asset = AssetFactory.create(reference_code="AD207B", variant_token="lizeron", sequence_number=2)
        shared = AssetFactory.shared(("AD019", "AD009"), "creme")
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        filename: Optional[str] = None,
        reference_code: str = "AD001",
        variant_token: str = "creme",
        sequence_number: int = 1,
        category: AssetCategory = AssetCategory.PRODUCT,
        reference_tokens: Optional[tuple[str, ...]] = None,
        payload: bytes = b"\xff\xd8\xff\xe0fake-jpeg",
    ) -> Asset:
        counter = cls._next_counter()
        return Asset(
            filename=filename or f"{reference_code}-{variant_token}-{sequence_number}-{counter}.jpg",
            payload=payload,
            reference_code=reference_code,
            reference_tokens=reference_tokens or (reference_code,),
            variant_token=variant_token,
            sequence_number=sequence_number,
            category=category,
        )

    @classmethod
    def shared(
        cls,
        references: tuple[str, ...],
        variant_token: str = "",
        sequence_number: int = 1,
        filename: Optional[str] = None,
    ) -> Asset:
        return cls.create(
            filename=filename,
            reference_code=references[0],
            reference_tokens=references,
            variant_token=variant_token,
            sequence_number=sequence_number,
            category=AssetCategory.SHARED,
        )

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list[Asset]:
        """Create `count` assets numbered 1..count."""
        return [cls.create(sequence_number=i, **overrides) for i in range(1, count + 1)]
