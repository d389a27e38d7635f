"""
Process-scoped application state.

Built once at startup and handed to routes through a dependency, so no
service keeps hidden module-level state.
"""

from dataclasses import dataclass
from typing import Optional
import structlog

from config.catalog import FieldCatalog, ModelCatalog, load_field_catalog, load_model_catalog
from config.settings import Settings
from integrations.inference_client import InferenceClient, build_inference_client
from integrations.mailer import EmailNotifier, MailSender
from integrations.telegram import TelegramAlerter
from services.file_store_service import EphemeralFileStore
from services.job_service import JobPipeline
from services.mapping_service import HeaderMapper
from services.mapping_validator import MappingValidator

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    fields: FieldCatalog
    models: ModelCatalog
    mapper: HeaderMapper
    validator: MappingValidator
    file_store: EphemeralFileStore
    pipeline: JobPipeline

    def start(self) -> None:
        self.file_store.start()

    def stop(self) -> None:
        self.file_store.stop()


def build_context(
    settings: Settings,
    client: Optional[InferenceClient] = None,
    notifier: Optional[EmailNotifier] = None,
    alerter: Optional[TelegramAlerter] = None,
) -> AppContext:
    """
    Wire every service from settings.

    `client`, `notifier` and `alerter` can be supplied to replace the
    real integrations (tests).

    Raises:
        ConfigurationError: If a catalog file is unreadable or malformed
    """
    fields = load_field_catalog(settings.fields_config_path)
    models = load_model_catalog(settings.models_config_path)
    validator = MappingValidator(fields)
    file_store = EphemeralFileStore(
        ttl_seconds=settings.file_ttl_seconds,
        sweep_interval_seconds=settings.file_sweep_interval_seconds,
    )

    pipeline = JobPipeline(
        settings=settings,
        models=models,
        validator=validator,
        file_store=file_store,
        client=client or build_inference_client(settings),
        notifier=notifier or EmailNotifier(MailSender.from_settings(settings)),
        alerter=alerter if alerter is not None else TelegramAlerter.from_settings(settings),
    )

    logger.info(
        "app_context_built",
        inference_mode=settings.inference_mode,
        smtp_configured=settings.smtp_configured,
        telegram_configured=settings.telegram_configured
    )

    return AppContext(
        settings=settings,
        fields=fields,
        models=models,
        mapper=HeaderMapper(fields),
        validator=validator,
        file_store=file_store,
        pipeline=pipeline,
    )
