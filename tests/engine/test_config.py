"""Unit tests for canary_engine.config and canary_engine.logging_config."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from canary_engine.config import CanarySettings, load_settings
from canary_engine.logging_config import JSONFormatter, configure_logging

_ENV_VARS = (
    "KAPABLE_API_URL",
    "KAPABLE_API_KEY",
    "KAPABLE_ADMIN_KEY",
    "KAPABLE_APP_ID",
    "KAPABLE_SELF_HEALTH_URL",
    "KAPABLE_REQUEST_TIMEOUT_MS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# CanarySettings
# ---------------------------------------------------------------------------


class TestCanarySettings:
    def test_defaults(self):
        settings = CanarySettings(_env_file=None)

        assert settings.api_url == ""
        assert settings.request_timeout_ms == 10_000
        assert settings.extended_timeout_ms == 30_000
        assert settings.lock_stale_after_ms == 120_000
        assert settings.env_name == "production"
        assert settings.deploy_app_slug == "canary-smoke"
        assert settings.app_id is None

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("KAPABLE_API_URL", "https://api.kapable.dev/")
        monkeypatch.setenv("KAPABLE_API_KEY", "sk-live")
        monkeypatch.setenv("KAPABLE_REQUEST_TIMEOUT_MS", "2500")

        settings = CanarySettings(_env_file=None)

        assert settings.api_url == "https://api.kapable.dev"
        assert settings.api_key.get_secret_value() == "sk-live"
        assert settings.request_timeout_ms == 2_500

    def test_secrets_are_masked(self):
        settings = CanarySettings(_env_file=None, api_key="sk-live", admin_key="sk-admin")
        assert "sk-live" not in repr(settings)
        assert "sk-admin" not in str(settings.admin_key)

    def test_blank_identifiers_become_none(self, monkeypatch):
        monkeypatch.setenv("KAPABLE_APP_ID", "   ")
        monkeypatch.setenv("KAPABLE_SELF_HEALTH_URL", "")

        settings = CanarySettings(_env_file=None)

        assert settings.app_id is None
        assert settings.self_health_url is None

    def test_missing_credentials(self):
        settings = CanarySettings(_env_file=None, api_url="https://api.test", api_key="k")
        assert settings.missing_credentials() == ["KAPABLE_ADMIN_KEY"]

    def test_load_settings_warns_about_missing_credentials(self, caplog):
        with caplog.at_level(logging.WARNING, logger="canary_engine.config"):
            settings = load_settings(_env_file=None, api_url="https://api.test")

        assert settings.api_url == "https://api.test"
        assert "KAPABLE_API_KEY is not set" in caplog.text
        assert "KAPABLE_ADMIN_KEY is not set" in caplog.text


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def _record(msg: str = "check finished", **extra) -> logging.LogRecord:
    record = logging.LogRecord("canary_engine.runner", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_base_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "canary_engine.runner"
        assert payload["message"] == "check finished"
        assert "timestamp" in payload
        assert "check" not in payload

    def test_context_fields(self):
        payload = json.loads(JSONFormatter().format(_record(check="data-crud", step="insert")))
        assert payload["check"] == "data-crud"
        assert payload["step"] == "insert"

    def test_exception(self):
        try:
            raise ValueError("bad body")
        except ValueError:
            record = logging.LogRecord(
                "canary_engine.base", logging.ERROR, __file__, 1, "crashed", None, sys.exc_info()
            )

        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad body" in payload["exc_info"]


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_structured(self):
        configure_logging("debug", structured=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_plain_text(self):
        configure_logging(logging.WARNING)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
