"""
Catalog connection routes and request dependencies.

Credentials travel with each request (X-Catalog-Uid / X-Catalog-Password
headers) and are passed explicitly to the catalog service.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
import structlog

from config import get_supplier_profile, list_supplier_profiles
from exceptions import AppError, MissingCredentialsError, ValidationError
from integrations.catalog_service import CatalogService
from integrations.odoo import OdooClient, get_catalog_service
from models.sync import CatalogCredentials, LoginRequest, LoginResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# DEPENDENCIES
# ===================

def catalog_credentials(
    uid: Optional[int] = Header(None, alias="X-Catalog-Uid"),
    password: Optional[str] = Header(None, alias="X-Catalog-Password"),
) -> Optional[CatalogCredentials]:
    """Credentials from the request headers, or None when absent."""
    if not uid or uid < 1 or not password:
        return None
    return CatalogCredentials(uid=uid, password=password)


def catalog_service(
    credentials: Optional[CatalogCredentials] = Depends(catalog_credentials),
) -> Optional[CatalogService]:
    """Catalog service bound to the request's credentials, if any."""
    if credentials is None:
        return None
    return get_catalog_service(credentials)


def require_catalog(catalog: Optional[CatalogService]) -> CatalogService:
    """
    Raises:
        MissingCredentialsError: Request carried no catalog credentials
    """
    if catalog is None:
        raise MissingCredentialsError()
    return catalog


# ===================
# ROUTES
# ===================

@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest):
    """
    Exchange catalog username/password for a uid.

    The client keeps the uid and password and sends them as headers.

    Raises:
        422: Credentials rejected
        503: Catalog unreachable
    """
    try:
        uid = OdooClient().authenticate(data.username, data.password)
        if uid is None:
            raise ValidationError(
                message="Catalog rejected the credentials",
                code="INVALID_CREDENTIALS"
            )
        return LoginResponse(uid=uid)

    except Exception as e:
        return handle_error(e)


@router.get("/suppliers")
async def list_suppliers():
    """List configured supplier profiles."""
    try:
        return {
            "data": [
                {"name": name, "display_name": get_supplier_profile(name).display_name}
                for name in list_supplier_profiles()
            ]
        }

    except Exception as e:
        return handle_error(e)
