"""
Catalog records, image assets and their matched pairing.

CatalogRecord and Asset are created once per session and never change.
MatchedRecord is replaced wholesale by every session mutation.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, ValidationInfo, computed_field, field_validator, model_validator

from models.base import BaseSchema, FrozenSchema


class AssetCategory(str, Enum):
    """How an asset may be assigned."""
    PRODUCT = "product"  # exclusive: belongs to at most one record
    SHARED = "shared"    # lifestyle photo: referenced by every record it shows


class ConflictStatus(str, Enum):
    """External state of a record's catalog target."""
    UNCHECKED = "unchecked"  # no lookup ran (no assets or no credentials)
    CLEAR = "clear"          # target found, no existing images
    EXISTING = "existing"    # target found and already has images
    NOT_FOUND = "not_found"  # lookup returned no candidate
    UNKNOWN = "unknown"      # lookup failed or timed out


class CatalogRecord(FrozenSchema):
    """One supplier product-variant entry from the structured import."""

    reference_code: str = Field(..., min_length=1, examples=["AD207B"])
    variant_code: str = Field(default="", examples=["LIZERON"])
    variant_label: str = Field(default="", validate_default=True, examples=["Lizeron"])
    display_name: str = ""
    category: str = ""

    @field_validator("reference_code", "variant_code")
    @classmethod
    def codes_uppercase(cls, v: str) -> str:
        return v.upper().strip()

    @field_validator("variant_label")
    @classmethod
    def label_defaults_to_code(cls, v: str, info: ValidationInfo) -> str:
        return v or info.data.get("variant_code", "")

    @computed_field
    @property
    def unique_key(self) -> str:
        return f"{self.reference_code}_{self.variant_code}"


class RecordCreate(BaseSchema):
    """Incoming record row from the tabular extraction step."""

    reference_code: str = Field(..., min_length=1)
    variant_code: str = ""
    variant_label: str = ""
    display_name: str = ""
    category: str = ""

    def to_record(self) -> CatalogRecord:
        return CatalogRecord(**self.model_dump())


class Asset(FrozenSchema):
    """One candidate image file awaiting assignment."""

    filename: str = Field(..., min_length=1)
    payload: bytes = Field(default=b"", exclude=True, repr=False)
    reference_code: str = ""
    reference_tokens: tuple[str, ...] = ()
    variant_token: str = ""
    sequence_number: int = 0
    category: AssetCategory = AssetCategory.PRODUCT

    @property
    def parsed(self) -> bool:
        """False when no filename strategy recognised the name."""
        return bool(self.reference_code)

    @property
    def is_shared(self) -> bool:
        return self.category == AssetCategory.SHARED

    @computed_field
    @property
    def size_bytes(self) -> int:
        return len(self.payload)


class ExternalState(FrozenSchema):
    """What the catalog service already holds for a record."""

    status: ConflictStatus = ConflictStatus.UNCHECKED
    has_existing_assets: bool = False
    existing_count: int = 0
    external_id: Optional[int] = None
    external_name: Optional[str] = None
    error: Optional[str] = None


class MatchedRecord(FrozenSchema):
    """
    A catalog record with its ordered asset list.

    Position 0 of `assets` is the primary (cover) image.
    """

    record: CatalogRecord
    assets: tuple[Asset, ...] = ()
    external: ExternalState = Field(default_factory=ExternalState)
    selected: bool = False
    committed: bool = False
    last_error: Optional[str] = None

    @model_validator(mode="after")
    def selected_needs_assets(self):
        if self.selected and not self.assets:
            raise ValueError("A record without assets cannot be selected")
        return self

    @computed_field
    @property
    def key(self) -> str:
        return self.record.unique_key

    @property
    def has_assets(self) -> bool:
        return len(self.assets) > 0

    @property
    def pending(self) -> bool:
        """Selected for the next batch and not yet synchronized."""
        return self.selected and self.has_assets and not self.committed

    @property
    def default_selected(self) -> bool:
        """
        Auto-selection policy: assets present and no existing catalog
        images. A failed lookup (UNKNOWN) never auto-selects.
        """
        return (
            self.has_assets
            and not self.committed
            and self.external.status != ConflictStatus.UNKNOWN
            and not self.external.has_existing_assets
        )
