"""
FastAPI dependencies for the sync engine.

The vault, registry and notifier are built once from settings and injected
into routes, so tests can replace any of them with app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from devcosts.config import get_settings
from devcosts.database import get_db
from devcosts.email import EmailNotifier
from .alert_evaluator import AlertEvaluator
from .usage_sync import CredentialVault, ProviderRegistry, UsageSyncService, build_registry


@lru_cache()
def get_vault() -> CredentialVault:
    return CredentialVault.from_settings(get_settings())


@lru_cache()
def get_registry() -> ProviderRegistry:
    return build_registry(timeout=get_settings().http_timeout_seconds)


@lru_cache()
def get_notifier() -> EmailNotifier:
    return EmailNotifier(get_settings())


def get_sync_service(
    db: Session = Depends(get_db),
    vault: CredentialVault = Depends(get_vault),
    registry: ProviderRegistry = Depends(get_registry)
) -> UsageSyncService:
    settings = get_settings()
    return UsageSyncService(
        db,
        vault,
        registry,
        manual_days=settings.manual_sync_days,
        scheduled_days=settings.scheduled_sync_days
    )


def get_alert_evaluator(
    db: Session = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier)
) -> AlertEvaluator:
    settings = get_settings()
    return AlertEvaluator(
        db,
        notifier=notifier,
        cooldown_hours=settings.alert_cooldown_hours,
        app_url=settings.app_url
    )
