"""Data models for inbound LINE webhook events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class MessageEvent:
    """A text message from a user; the only message type we answer."""

    reply_token: str
    sender_id: str | None
    text: str
    webhook_event_id: str | None = None
    is_redelivery: bool = False

    kind = "message"


@dataclass(frozen=True)
class FollowEvent:
    """A user added the official account as a friend (or unblocked it)."""

    reply_token: str
    sender_id: str | None = None
    webhook_event_id: str | None = None
    is_redelivery: bool = False

    kind = "follow"


@dataclass(frozen=True)
class UnhandledEvent:
    """Anything we do not answer: postback, unfollow, stickers, future types."""

    declared_type: str
    webhook_event_id: str | None = None
    is_redelivery: bool = False

    kind = "unhandled"


LineEvent = MessageEvent | FollowEvent | UnhandledEvent


class OutcomeStatus(str, Enum):
    HANDLED = "handled"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EventOutcome:
    """Result of handling one event; used for logging only."""

    event_type: str
    status: OutcomeStatus
    webhook_event_id: str | None = None
    error: str | None = None
