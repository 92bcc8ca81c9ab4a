"""Built-in checks for the Kapable platform, in execution order."""

from __future__ import annotations

from canary_engine.base import BaseCheck
from canary_engine.checks.ai_chat import AiChatCheck
from canary_engine.checks.app_lifecycle import AppLifecycleCheck
from canary_engine.checks.data_crud import DataCrudCheck
from canary_engine.checks.deploy_health import DeployHealthCheck
from canary_engine.checks.functions import FunctionsCheck
from canary_engine.checks.health import HealthCheck
from canary_engine.checks.toggles import TogglesCheck
from canary_engine.config import CanarySettings

__all__ = [
    "AiChatCheck",
    "AppLifecycleCheck",
    "DataCrudCheck",
    "DeployHealthCheck",
    "FunctionsCheck",
    "HealthCheck",
    "TogglesCheck",
    "builtin_checks",
]


def builtin_checks(settings: CanarySettings) -> list[BaseCheck]:
    """Instantiate every built-in check, configured from *settings*."""
    return [
        HealthCheck(),
        DataCrudCheck(),
        TogglesCheck(),
        AiChatCheck(),
        FunctionsCheck(
            settings.app_id,
            env_name=settings.env_name,
            create_timeout_ms=settings.extended_timeout_ms,
        ),
        AppLifecycleCheck(slug=settings.deploy_app_slug, app_domain=settings.app_domain),
        DeployHealthCheck(settings.self_health_url),
    ]
