"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from unittest.mock import MagicMock

from config.catalog import FieldCatalog, ModelCatalog, load_field_catalog
from config.settings import Settings
from integrations.inference_client import PullInferenceClient, InlineInferenceClient
from integrations.mailer import EmailNotifier
from services.file_store_service import EphemeralFileStore
from services.job_service import JobPipeline
from services.mapping_service import HeaderMapper
from services.mapping_validator import MappingValidator


# ===================
# CATALOGS
# ===================

@pytest.fixture
def field_catalog() -> FieldCatalog:
    """
    Minimal catalog with one alias per field.

    Usage:
        def test_something(field_catalog):
            mapper = HeaderMapper(field_catalog)
    """
    return FieldCatalog.from_dict({
        "product_images": {"aliases": ["product images"]},
        "title": {"aliases": ["title"]},
        "bullet_points": {"multi": True, "aliases": ["bullet point"], "candidate_limit": 15},
        "description": {"aliases": ["description"]},
    })


@pytest.fixture
def default_field_catalog() -> FieldCatalog:
    """Built-in catalog (includes Cyrillic aliases)."""
    return load_field_catalog()


@pytest.fixture
def model_catalog() -> ModelCatalog:
    return ModelCatalog.from_list([
        {"id": "listing-v1", "title": "Listing generator v1"},
        {"id": "listing-v2", "title": "Listing generator v2"},
    ])


@pytest.fixture
def mapper(field_catalog) -> HeaderMapper:
    return HeaderMapper(field_catalog)


@pytest.fixture
def validator(field_catalog) -> MappingValidator:
    return MappingValidator(field_catalog)


@pytest.fixture
def sample_headers() -> list[str]:
    return ["Product Images", "Title", "Bullet Point 1", "Bullet Point 2", "Description"]


@pytest.fixture
def sample_mapping() -> dict:
    return {
        "product_images": "Product Images",
        "title": "Title",
        "bullet_points": ["Bullet Point 1", "Bullet Point 2"],
        "description": "Description",
    }


# ===================
# SETTINGS
# ===================

def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment and .env files."""
    values = {
        "environment": "development",
        "public_base_url": "http://mapper.test",
        "inference_mode": "pull",
        "inference_base_url": "http://inference.test",
        "inference_poll_interval_seconds": 1.0,
        "inference_max_wait_seconds": 60.0,
        "notify_on_start": False,
        "notify_on_failure": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


# ===================
# PIPELINE
# ===================

@pytest.fixture
def file_store() -> EphemeralFileStore:
    return EphemeralFileStore(ttl_seconds=3600, sweep_interval_seconds=60)


@pytest.fixture
def mock_pull_client() -> MagicMock:
    """
    Pull-mode client mock (passes isinstance checks).

    Usage:
        def test_something(mock_pull_client):
            mock_pull_client.submit.return_value = "handle-1"
    """
    client = MagicMock(spec=PullInferenceClient)
    client.mode = "pull"
    return client


@pytest.fixture
def mock_inline_client() -> MagicMock:
    client = MagicMock(spec=InlineInferenceClient)
    client.mode = "inline"
    return client


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock(spec=EmailNotifier)
    notifier.job_started.return_value = True
    notifier.job_completed.return_value = True
    notifier.job_failed.return_value = True
    return notifier


@pytest.fixture
def pipeline(test_settings, model_catalog, validator, file_store, mock_pull_client, mock_notifier) -> JobPipeline:
    return JobPipeline(
        settings=test_settings,
        models=model_catalog,
        validator=validator,
        file_store=file_store,
        client=mock_pull_client,
        notifier=mock_notifier,
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(test_settings, mock_pull_client, mock_notifier):
    """
    Create FastAPI test client with mocked integrations.

    The lifespan is not entered, so the file sweeper thread never starts.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/fields")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import create_app
    from services.app_context import build_context

    context = build_context(
        test_settings,
        client=mock_pull_client,
        notifier=mock_notifier,
        alerter=None,
    )
    return TestClient(create_app(context))
