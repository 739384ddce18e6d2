"""Tests for environment configuration loading."""

from __future__ import annotations

import logging

import pytest
from pydantic import SecretStr, ValidationError

from src.config import DEFAULT_API_BASE, ConfigurationError, LineChannelSettings


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "LINE_CHANNEL_SECRET",
        "LINE_CHANNEL_ACCESS_TOKEN",
        "LINE_API_BASE",
        "LINE_REPLY_TIMEOUT_SECONDS",
        "LINE_SHUTDOWN_GRACE_SECONDS",
        "AUDIT_LOG_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


def test_from_env_reads_all_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("LINE_CHANNEL_SECRET", "sec")
    monkeypatch.setenv("LINE_CHANNEL_ACCESS_TOKEN", "tok")
    monkeypatch.setenv("LINE_API_BASE", "http://mock")
    monkeypatch.setenv("LINE_REPLY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("LINE_SHUTDOWN_GRACE_SECONDS", "0")
    monkeypatch.setenv("AUDIT_LOG_PATH", "/tmp/audit.jsonl")

    settings = LineChannelSettings.from_env()

    assert settings.channel_secret.get_secret_value() == "sec"
    assert settings.channel_access_token.get_secret_value() == "tok"
    assert settings.api_base == "http://mock"
    assert settings.reply_timeout_seconds == 2.5
    assert settings.shutdown_grace_seconds == 0
    assert settings.audit_log_path == "/tmp/audit.jsonl"
    assert settings.missing() == []
    settings.require()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("LINE_CHANNEL_SECRET", "sec")
    monkeypatch.setenv("LINE_CHANNEL_ACCESS_TOKEN", "tok")
    settings = LineChannelSettings.from_env()
    assert settings.api_base == DEFAULT_API_BASE
    assert settings.reply_timeout_seconds == 10.0
    assert settings.audit_log_path is None


def test_missing_secrets_logged_not_raised(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
) -> None:
    _clear_env(monkeypatch)
    with caplog.at_level(logging.ERROR, logger="src.config"):
        settings = LineChannelSettings.from_env()
    assert settings.missing() == ["LINE_CHANNEL_SECRET", "LINE_CHANNEL_ACCESS_TOKEN"]
    assert "LINE_CHANNEL_SECRET" in caplog.text


def test_require_raises_configuration_error() -> None:
    settings = LineChannelSettings(channel_secret=SecretStr("sec"))
    with pytest.raises(ConfigurationError) as exc_info:
        settings.require()
    assert exc_info.value.missing == ["LINE_CHANNEL_ACCESS_TOKEN"]


def test_secrets_hidden_from_repr() -> None:
    settings = LineChannelSettings(
        channel_secret=SecretStr("very-secret"),
        channel_access_token=SecretStr("very-token"),
    )
    text = repr(settings) + str(settings) + settings.model_dump_json()
    assert "very-secret" not in text
    assert "very-token" not in text


def test_presence_reports_booleans_only() -> None:
    settings = LineChannelSettings(channel_secret=SecretStr("sec"))
    assert settings.presence() == {"hasSecret": True, "hasToken": False}


def test_settings_are_frozen() -> None:
    settings = LineChannelSettings()
    with pytest.raises(ValidationError):
        settings.api_base = "http://elsewhere"  # type: ignore[misc]


def test_non_positive_timeout_rejected() -> None:
    with pytest.raises(ValidationError):
        LineChannelSettings(reply_timeout_seconds=0)
