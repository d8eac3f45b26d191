"""
Odoo JSON-RPC integration for catalog lookups and image uploads.

Product templates are found by `default_code` (e.g. "AD008_CREME") and
images land either on the template itself (main image) or as gallery
`product.image` records.
"""

import base64
import itertools
from typing import Any, Optional
import requests
import structlog

from config import settings
from exceptions import CatalogServiceError
from models.sync import CatalogCandidate, CatalogCredentials, UploadOutcome
from utils.text_utils import fold_text, strip_separators

logger = structlog.get_logger(__name__)

TEMPLATE_MODEL = "product.template"
IMAGE_MODEL = "product.image"


class OdooClient:
    """
    Thin JSON-RPC client.

    Every call carries its credentials explicitly; nothing is read from
    ambient storage.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        db: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or settings.catalog_url
        self.db = db or settings.catalog_db
        self.timeout = timeout or settings.catalog_timeout_seconds
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def _post(self, service: str, method: str, args: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": args},
            "id": next(self._ids),
        }

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.Timeout as e:
            logger.warning("catalog_request_timeout", service=service, method=method)
            raise CatalogServiceError(
                f"Catalog request timed out after {self.timeout}s",
                details={"method": method}
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error("catalog_request_failed", service=service, method=method, error=str(e))
            raise CatalogServiceError(f"Catalog request failed: {e}", details={"method": method}) from e
        except ValueError as e:
            raise CatalogServiceError("Catalog returned invalid JSON", details={"method": method}) from e

        if result.get("error"):
            error = result["error"]
            message = (error.get("data") or {}).get("message") or error.get("message") or str(error)
            logger.error("catalog_rpc_error", service=service, method=method, error=message)
            raise CatalogServiceError(f"Catalog RPC error: {message}", details={"method": method})

        return result.get("result")

    def authenticate(self, username: str, password: str) -> Optional[int]:
        """
        Exchange username/password for a uid.

        Returns:
            uid, or None when the catalog rejects the credentials
        """
        uid = self._post("common", "authenticate", [self.db, username, password, {}])
        logger.info("catalog_login", username=username, success=bool(uid))
        return uid or None

    def execute_kw(
        self,
        credentials: CatalogCredentials,
        model: str,
        method: str,
        args: list,
        kwargs: Optional[dict] = None,
    ) -> Any:
        """Call `model.method(*args, **kwargs)` on the catalog."""
        call_args = [self.db, credentials.uid, credentials.password, model, method, args]
        if kwargs:
            call_args.append(kwargs)
        return self._post("object", "execute_kw", call_args)


def _compact(text: Optional[str]) -> str:
    return strip_separators(fold_text(text))


class OdooCatalogService:
    """CatalogService backed by Odoo product templates."""

    def __init__(self, client: OdooClient, credentials: CatalogCredentials):
        self.client = client
        self.credentials = credentials

    def _call(self, model: str, method: str, args: list, kwargs: Optional[dict] = None) -> Any:
        return self.client.execute_kw(self.credentials, model, method, args, kwargs)

    def _read_templates(self, ids: list[int]) -> list[dict]:
        if not ids:
            return []
        return self._call(TEMPLATE_MODEL, "read", [ids, ["name", "default_code"]]) or []

    # ===================
    # LOOKUP
    # ===================

    def lookup(self, reference_code: str, variant_label: str) -> list[CatalogCandidate]:
        """
        Find product templates for a reference/variant.

        Tries, in order: exact `REF_VARIANT` code, codes starting with the
        reference (filtered by variant), names containing the reference
        (filtered by variant). Each candidate gets its existing image count.
        """
        reference = reference_code.upper()
        variant = _compact(variant_label)
        found: list[CatalogCandidate] = []

        # Strategy 1: exact reference + variant code
        if variant:
            code = f"{reference}_{variant.upper()}"
            ids = self._call(TEMPLATE_MODEL, "search", [[["default_code", "=", code]]], {"limit": 10})
            for tmpl in self._read_templates(ids or []):
                found.append(self._candidate(tmpl, variant_label))

        # Strategy 2: codes starting with the reference
        if not found:
            ids = self._call(
                TEMPLATE_MODEL, "search",
                [[["default_code", "=ilike", f"{reference}%"]]], {"limit": 50}
            )
            for tmpl in self._read_templates(ids or []):
                code = tmpl.get("default_code") or ""
                code_variant = code.split("_", 1)[1] if "_" in code else None
                if variant:
                    other = _compact(code_variant)
                    if not other or not (variant in other or other in variant):
                        continue
                found.append(self._candidate(tmpl, code_variant))

        # Strategy 3: name contains the reference
        if not found:
            ids = self._call(
                TEMPLATE_MODEL, "search",
                [[["name", "ilike", reference]]], {"limit": 20}
            )
            for tmpl in self._read_templates(ids or []):
                if variant and variant not in _compact(tmpl.get("name")):
                    continue
                found.append(self._candidate(tmpl, variant_label or None))

        unique: dict[int, CatalogCandidate] = {}
        for candidate in found:
            unique.setdefault(candidate.external_id, candidate)

        candidates = [self._with_image_count(c) for c in unique.values()]
        logger.debug(
            "catalog_lookup_completed",
            reference=reference,
            variant=variant_label,
            candidates=len(candidates),
        )
        return candidates

    def _candidate(self, tmpl: dict, variant_label: Optional[str]) -> CatalogCandidate:
        return CatalogCandidate(
            external_id=tmpl["id"],
            name=tmpl.get("name") or "",
            reference=tmpl.get("default_code") or "",
            variant_label=variant_label,
        )

    def _with_image_count(self, candidate: CatalogCandidate) -> CatalogCandidate:
        """Gallery images plus the template's main image."""
        gallery = self._call(
            IMAGE_MODEL, "search_count",
            [[["product_tmpl_id", "=", candidate.external_id]]]
        ) or 0
        template = self._call(TEMPLATE_MODEL, "read", [[candidate.external_id], ["image_1920"]]) or []
        has_main = 1 if template and template[0].get("image_1920") else 0

        count = int(gallery) + has_main
        return candidate.model_copy(update={
            "existing_asset_count": count,
            "has_existing_assets": count > 0,
        })

    # ===================
    # UPLOAD
    # ===================

    def upload_asset(
        self,
        external_id: int,
        payload: bytes,
        display_name: str,
        sequence: int,
        is_primary: bool,
    ) -> UploadOutcome:
        """
        Upload one image.

        Every image becomes a gallery `product.image` record with its
        sequence; the primary one is also written as the template's main
        image.
        """
        encoded = base64.b64encode(payload).decode("ascii")

        try:
            if is_primary:
                self._call(TEMPLATE_MODEL, "write", [[external_id], {"image_1920": encoded}])
            image_id = self._call(IMAGE_MODEL, "create", [{
                "name": display_name,
                "product_tmpl_id": external_id,
                "image_1920": encoded,
                "sequence": sequence,
            }])
        except CatalogServiceError as e:
            return UploadOutcome(success=False, error=e.message)

        logger.info(
            "catalog_image_uploaded",
            external_id=external_id,
            sequence=sequence,
            is_primary=is_primary,
            image_id=image_id,
        )
        return UploadOutcome(success=True, image_id=image_id)


def get_catalog_service(credentials: CatalogCredentials) -> OdooCatalogService:
    """Build a catalog service bound to one credential context."""
    return OdooCatalogService(OdooClient(), credentials)
