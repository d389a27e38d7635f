"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    load_field_catalog / load_model_catalog: Startup catalog loaders
"""

from config.settings import settings, get_settings, Settings
from config.catalog import (
    FieldCatalog,
    ModelCatalog,
    load_field_catalog,
    load_model_catalog,
)

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Catalogs
    "FieldCatalog",
    "ModelCatalog",
    "load_field_catalog",
    "load_model_catalog",
]
