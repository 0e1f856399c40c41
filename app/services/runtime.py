"""
app/services/runtime.py

Process-wide wiring of the store client, notifier and repositories.

Every getter is cached so the whole process shares one gateway, one
notifier and one store client (and therefore one cached shape choice).
"""

from __future__ import annotations

from functools import lru_cache

from app.config import get_normalizer_settings, get_notifier_settings
from app.normalizers.alias_config import DEFAULT_ALIAS_CONFIG, load_alias_config
from app.normalizers.key_normalizer import KeyNormalizer
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.metric_store import MetricStoreClient
from app.repositories.section_repository import SectionRepository
from app.repositories.upload_job_repository import UploadJobRepository
from app.services.change_notifier import ChangeNotifier
from app.services.dashboard_projector import DashboardProjector
from db.repositories.table_gateway import SQLAlchemyTableGateway, TableGateway
from db.session import get_session_factory


@lru_cache(maxsize=1)
def get_key_normalizer() -> KeyNormalizer:
    settings = get_normalizer_settings()
    if settings.alias_config_path:
        return KeyNormalizer(load_alias_config(settings.alias_config_path))
    return KeyNormalizer(DEFAULT_ALIAS_CONFIG)


@lru_cache(maxsize=1)
def get_table_gateway() -> TableGateway:
    return SQLAlchemyTableGateway(get_session_factory())


@lru_cache(maxsize=1)
def get_audit_log_repository() -> AuditLogRepository:
    return AuditLogRepository(get_table_gateway())


@lru_cache(maxsize=1)
def get_change_notifier() -> ChangeNotifier:
    settings = get_notifier_settings()
    return ChangeNotifier(
        get_audit_log_repository(),
        changed_by=settings.changed_by,
        default_buffer=settings.subscriber_buffer,
        retry_delay=settings.subscriber_retry_seconds,
    )


@lru_cache(maxsize=1)
def get_metric_store_client() -> MetricStoreClient:
    return MetricStoreClient(
        get_table_gateway(),
        get_key_normalizer(),
        get_change_notifier(),
    )


@lru_cache(maxsize=1)
def get_section_repository() -> SectionRepository:
    return SectionRepository(get_table_gateway(), get_metric_store_client())


@lru_cache(maxsize=1)
def get_upload_job_repository() -> UploadJobRepository:
    return UploadJobRepository(get_table_gateway())


@lru_cache(maxsize=1)
def get_dashboard_projector() -> DashboardProjector:
    return DashboardProjector(get_key_normalizer())
