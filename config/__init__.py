"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    get_supplier_profile: Per-supplier filename and variant rules
"""

from config.settings import settings, get_settings, Settings
from config.supplier_profiles import (
    SupplierProfile,
    get_supplier_profile,
    list_supplier_profiles,
    load_supplier_profiles,
)

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Supplier profiles
    "SupplierProfile",
    "get_supplier_profile",
    "list_supplier_profiles",
    "load_supplier_profiles",
]
