"""
Catalog service contract.

The conflict checker and batch synchronizer only talk to this protocol;
integrations.odoo provides the production implementation and tests use
an in-memory fake.
"""

from typing import Protocol

from models.sync import CatalogCandidate, UploadOutcome


class CatalogService(Protocol):
    """External product catalog, bound to one credential context."""

    def lookup(self, reference_code: str, variant_label: str) -> list[CatalogCandidate]:
        """
        Find catalog targets for a record.

        Raises:
            CatalogServiceError: On transport errors, timeouts or RPC errors
        """
        ...

    def upload_asset(
        self,
        external_id: int,
        payload: bytes,
        display_name: str,
        sequence: int,
        is_primary: bool,
    ) -> UploadOutcome:
        """Upload one image. Failures come back as UploadOutcome(success=False)."""
        ...
