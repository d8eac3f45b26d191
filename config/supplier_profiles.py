"""
Per-supplier matching rules.

Each supplier names its photos differently and spells colours its own way.
Rules live in a JSON document (supplier_profiles.json by default) so a new
supplier is added without touching the matcher.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
import structlog

from config.settings import settings
from exceptions import SupplierProfileNotFoundError, ValidationError

logger = structlog.get_logger(__name__)

KNOWN_STRATEGIES = ("hash_prefixed", "hash_suffixed", "hyphenated", "space_separated")


class SupplierProfile(BaseModel):
    """Filename and variant rules for one supplier."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str = ""
    reference_pattern: str = Field(
        default=r"[A-Z]{2,}\d+[A-Z0-9]*",
        description="Regex for a bare reference code token (matched case-insensitively)"
    )
    strategies: tuple[str, ...] = Field(
        default=("hyphenated", "space_separated"),
        description="Filename strategies, most specific first"
    )
    batch_markers: tuple[str, ...] = ("BB",)
    shared_markers: tuple[str, ...] = ()
    noise_tokens: tuple[str, ...] = ()
    known_variants: tuple[str, ...] = ()
    variant_qualifiers: tuple[str, ...] = ("rouge", "clair", "light")
    variant_aliases: dict[str, str] = Field(default_factory=dict)

    @field_validator("strategies")
    @classmethod
    def strategies_known(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [s for s in v if s not in KNOWN_STRATEGIES]
        if unknown:
            raise ValueError(f"Unknown filename strategies: {', '.join(unknown)}")
        return v

    @field_validator("batch_markers", "shared_markers", "noise_tokens")
    @classmethod
    def upper_tokens(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(token.upper() for token in v)

    @field_validator("known_variants", "variant_qualifiers")
    @classmethod
    def lower_tokens(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(token.lower() for token in v)


def load_supplier_profiles(path: Optional[Path] = None) -> dict[str, SupplierProfile]:
    """
    Load every supplier profile from a JSON document.

    Args:
        path: JSON file (defaults to settings.supplier_profiles_path)

    Returns:
        Dict of profile name -> SupplierProfile

    Raises:
        ValidationError: If the file cannot be read or a profile is invalid
    """
    path = Path(path or settings.supplier_profiles_path)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        profiles = {
            name: SupplierProfile(name=name, **body)
            for name, body in raw.items()
        }
    except (OSError, ValueError) as e:
        logger.error("supplier_profiles_load_failed", path=str(path), error=str(e))
        raise ValidationError(
            message=f"Could not load supplier profiles: {e}",
            code="SUPPLIER_PROFILES_INVALID",
            details={"path": str(path)}
        ) from e

    logger.info("supplier_profiles_loaded", path=str(path), count=len(profiles))
    return profiles


@lru_cache()
def _cached_profiles() -> dict[str, SupplierProfile]:
    return load_supplier_profiles()


def get_supplier_profile(name: Optional[str] = None) -> SupplierProfile:
    """
    Get a supplier profile by name.

    Raises:
        SupplierProfileNotFoundError: If no profile has that name
    """
    name = name or settings.default_supplier
    profile = _cached_profiles().get(name)
    if profile is None:
        raise SupplierProfileNotFoundError(name)
    return profile


def list_supplier_profiles() -> list[str]:
    """Names of all configured supplier profiles."""
    return sorted(_cached_profiles())
