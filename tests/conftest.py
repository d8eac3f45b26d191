"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import itertools
import threading
from typing import Optional

import pytest

from config import get_supplier_profile
from exceptions import CatalogServiceError
from models.sync import CatalogCandidate, UploadOutcome
from services.session_service import SessionStore


# ===================
# FAKE CATALOG SERVICE
# ===================

class FakeCatalogService:
    """
    In-memory catalog service.

    Products are registered with `add_product`; every lookup and upload
    is recorded for assertions.
    """

    def __init__(self):
        self.products: list[CatalogCandidate] = []
        self.lookups: list[tuple[str, str]] = []
        self.uploads: list[dict] = []
        self.fail_lookup_for: set[str] = set()
        self.fail_upload_for: set[int] = set()
        self.on_lookup = None
        self.on_upload = None
        self._ids = itertools.count(100)
        self._lock = threading.Lock()

    def add_product(
        self,
        reference_code: str,
        variant_label: str,
        existing: int = 0,
        external_id: Optional[int] = None,
    ) -> CatalogCandidate:
        candidate = CatalogCandidate(
            external_id=external_id or next(self._ids),
            name=f"{reference_code} {variant_label}",
            reference=f"{reference_code}_{variant_label.upper()}",
            variant_label=variant_label,
            has_existing_assets=existing > 0,
            existing_asset_count=existing,
        )
        self.products.append(candidate)
        return candidate

    def lookup(self, reference_code: str, variant_label: str) -> list[CatalogCandidate]:
        with self._lock:
            self.lookups.append((reference_code, variant_label))
        if self.on_lookup is not None:
            self.on_lookup(reference_code)
        if reference_code in self.fail_lookup_for:
            raise CatalogServiceError("Catalog request timed out after 30.0s")
        return [p for p in self.products if p.reference.startswith(f"{reference_code}_")]

    def upload_asset(
        self,
        external_id: int,
        payload: bytes,
        display_name: str,
        sequence: int,
        is_primary: bool,
    ) -> UploadOutcome:
        self.uploads.append({
            "external_id": external_id,
            "payload": payload,
            "display_name": display_name,
            "sequence": sequence,
            "is_primary": is_primary,
        })
        if self.on_upload is not None:
            self.on_upload(self.uploads[-1])
        if external_id in self.fail_upload_for:
            return UploadOutcome(success=False, error="Catalog RPC error: access denied")
        return UploadOutcome(success=True, image_id=len(self.uploads))


# ===================
# FIXTURES
# ===================

@pytest.fixture
def emile_profile():
    """Emile et Ida supplier profile (hyphenated + space-separated names)."""
    return get_supplier_profile("emile_et_ida")


@pytest.fixture
def mini_rodini_profile():
    return get_supplier_profile("mini_rodini")


@pytest.fixture
def new_society_profile():
    return get_supplier_profile("the_new_society")


@pytest.fixture
def fake_catalog() -> FakeCatalogService:
    return FakeCatalogService()


@pytest.fixture
def store() -> SessionStore:
    """Fresh session store per test."""
    return SessionStore(ttl_minutes=60)
