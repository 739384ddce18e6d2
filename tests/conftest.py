"""Shared test fixtures for the LINE webhook gateway."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from src.audit.logger import AuditLogger
from src.config import LineChannelSettings
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.webhook.reply import LineReplyClient

CHANNEL_SECRET = "test-channel-secret"
ACCESS_TOKEN = "test-access-token"


@pytest.fixture
def settings() -> LineChannelSettings:
    return make_settings()


@pytest.fixture
def mock_reply_client() -> AsyncMock:
    return AsyncMock(spec=LineReplyClient)


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> LineChannelSettings:
    """Factory for LineChannelSettings with fake credentials."""
    defaults: dict[str, Any] = {
        "channel_secret": SecretStr(CHANNEL_SECRET),
        "channel_access_token": SecretStr(ACCESS_TOKEN),
    }
    defaults.update(kwargs)
    return LineChannelSettings(**defaults)


def make_audit_event(**kwargs: object) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, object] = {
        "event_type": AuditEventType.SIGNATURE_REJECTED,
        "action": "test_action",
        "result": "blocked",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)  # type: ignore[arg-type]


def make_text_event(
    text: str = "hello",
    reply_token: str = "reply-token-1",
    user_id: str = "U1234567890",
    **kwargs: Any,
) -> dict[str, Any]:
    event: dict[str, Any] = {
        "type": "message",
        "mode": "active",
        "timestamp": 1700000000000,
        "webhookEventId": "01HEVENT0000000000000000001",
        "deliveryContext": {"isRedelivery": False},
        "replyToken": reply_token,
        "source": {"type": "user", "userId": user_id},
        "message": {"id": "468789577898262530", "type": "text", "text": text},
    }
    event.update(kwargs)
    return event


def make_follow_event(reply_token: str = "reply-token-follow", **kwargs: Any) -> dict[str, Any]:
    event: dict[str, Any] = {
        "type": "follow",
        "mode": "active",
        "timestamp": 1700000000000,
        "webhookEventId": "01HEVENT0000000000000000002",
        "deliveryContext": {"isRedelivery": False},
        "replyToken": reply_token,
        "source": {"type": "user", "userId": "U0987654321"},
    }
    event.update(kwargs)
    return event


def make_payload(*events: dict[str, Any]) -> bytes:
    return json.dumps({"destination": "Uxxxxxxxx", "events": list(events)}).encode()
