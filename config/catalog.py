"""
Field and model catalogs.

Loaded once at startup from JSON (or built-in defaults) and passed to the
services that need them. Read-only afterwards, so no locking.

Fields file format:
    {
        "title": {"required": true, "aliases": ["title", "product name"]},
        "bullet_points": {"multi": true, "aliases": ["bullet point"], "candidate_limit": 15}
    }

Models file format:
    [{"id": "listing-v1", "title": "Listing generator v1"}]
"""

import json
from pathlib import Path
from typing import Iterator, Optional, Union
import structlog
from pydantic import ValidationError as PydanticValidationError

from models.catalog import FieldDefinition, ModelOption
from exceptions import ConfigurationError
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)


DEFAULT_FIELDS: dict[str, dict] = {
    "product_images": {
        "aliases": [
            "product images", "images", "image urls", "image", "photos",
            "изображения", "фото", "картинки",
        ],
    },
    "title": {
        "aliases": [
            "title", "product title", "product name", "name",
            "заголовок", "название", "наименование",
        ],
    },
    "description": {
        "aliases": [
            "description", "product description",
            "описание",
        ],
    },
    "bullet_points": {
        "multi": True,
        "candidate_limit": 15,
        "aliases": [
            "bullet point", "bullet points", "bullets", "key features", "features",
            "буллеты", "преимущества",
        ],
    },
}

DEFAULT_MODELS: list[dict] = [
    {"id": "listing-v1", "title": "Listing generator v1"},
]


class FieldCatalog:
    """
    Canonical fields with their normalized aliases.

    Field order is the configured order; it drives mapping output order.
    """

    def __init__(self, fields: list[FieldDefinition]):
        self._fields = {f.name: f for f in fields}
        self._aliases: dict[str, tuple[str, ...]] = {}

        for f in fields:
            normalized = []
            for alias in f.aliases:
                value = normalize_header(alias)
                if value and value not in normalized:
                    normalized.append(value)
            self._aliases[f.name] = tuple(normalized)

    @classmethod
    def from_dict(cls, data: dict) -> "FieldCatalog":
        if not isinstance(data, dict) or not data:
            raise ConfigurationError("Field configuration must be a non-empty object")
        try:
            fields = [
                FieldDefinition(name=name, **(options or {}))
                for name, options in data.items()
            ]
        except (PydanticValidationError, TypeError) as e:
            raise ConfigurationError(
                "Invalid field configuration",
                details={"original_error": str(e)}
            )
        return cls(fields)

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def get(self, name: str) -> Optional[FieldDefinition]:
        return self._fields.get(name)

    def aliases(self, name: str) -> tuple[str, ...]:
        """Normalized aliases for a field, in configured order."""
        return self._aliases.get(name, ())

    @property
    def names(self) -> list[str]:
        return list(self._fields)

    @property
    def required(self) -> list[FieldDefinition]:
        return [f for f in self._fields.values() if f.required]


class ModelCatalog:
    """Selectable prediction models, in configured order."""

    def __init__(self, models: list[ModelOption]):
        self._models = {m.id: m for m in models}

    @classmethod
    def from_list(cls, data: list) -> "ModelCatalog":
        if not isinstance(data, list) or not data:
            raise ConfigurationError("Model configuration must be a non-empty list")
        try:
            models = [ModelOption(**item) for item in data]
        except (PydanticValidationError, TypeError) as e:
            raise ConfigurationError(
                "Invalid model configuration",
                details={"original_error": str(e)}
            )
        return cls(models)

    def __iter__(self) -> Iterator[ModelOption]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._models

    @property
    def ids(self) -> list[str]:
        return list(self._models)

    def unknown(self, model_ids: list[str]) -> list[str]:
        """Requested ids that are not configured, in request order."""
        return [m for m in model_ids if m not in self._models]


def _read_json(path: Union[str, Path]):
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("catalog_read_failed", path=str(path), error=str(e))
        raise ConfigurationError(
            f"Cannot read configuration file {path}",
            details={"original_error": str(e)}
        )


def load_field_catalog(path: Optional[Union[str, Path]] = None) -> FieldCatalog:
    """
    Load required fields and aliases.

    Args:
        path: JSON file; built-in defaults when None

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    data = _read_json(path) if path else DEFAULT_FIELDS
    catalog = FieldCatalog.from_dict(data)
    logger.info(
        "field_catalog_loaded",
        source=str(path) if path else "defaults",
        fields=catalog.names
    )
    return catalog


def load_model_catalog(path: Optional[Union[str, Path]] = None) -> ModelCatalog:
    """
    Load selectable prediction models.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    data = _read_json(path) if path else DEFAULT_MODELS
    catalog = ModelCatalog.from_list(data)
    logger.info(
        "model_catalog_loaded",
        source=str(path) if path else "defaults",
        models=catalog.ids
    )
    return catalog
