"""Parse a verified webhook body into typed events."""

from __future__ import annotations

import json
from typing import Any

from src.webhook.models import FollowEvent, LineEvent, MessageEvent, UnhandledEvent


class MalformedPayloadError(Exception):
    """Raised when a verified body is not a LINE webhook JSON object."""


def parse_events(body: bytes) -> list[LineEvent]:
    """Decode ``body`` and classify each record under ``events``.

    A missing ``events`` key means zero events. Records we cannot answer are
    kept as UnhandledEvent so callers can log them; they never raise.
    """
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise MalformedPayloadError(f"Invalid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedPayloadError("Webhook payload must be a JSON object")

    records = payload.get("events")
    if records is None:
        return []
    if not isinstance(records, list):
        raise MalformedPayloadError("'events' must be a list")

    return [classify_event(record) for record in records]


def classify_event(record: Any) -> LineEvent:
    """Map one raw event record to MessageEvent, FollowEvent or UnhandledEvent."""
    if not isinstance(record, dict):
        return UnhandledEvent(declared_type=type(record).__name__)

    event_type = str(record.get("type", ""))
    event_id = record.get("webhookEventId")
    if not isinstance(event_id, str):
        event_id = None
    delivery = record.get("deliveryContext")
    redelivery = bool(delivery.get("isRedelivery")) if isinstance(delivery, dict) else False
    reply_token = record.get("replyToken")
    source = record.get("source")
    sender_id = source.get("userId") if isinstance(source, dict) else None

    if event_type == "message" and isinstance(reply_token, str) and reply_token:
        message = record.get("message")
        if isinstance(message, dict) and message.get("type") == "text":
            text = message.get("text")
            return MessageEvent(
                reply_token=reply_token,
                sender_id=sender_id,
                text=text if isinstance(text, str) else "",
                webhook_event_id=event_id,
                is_redelivery=redelivery,
            )
        # stickers, images, locations...
        message_type = message.get("type") if isinstance(message, dict) else None
        return UnhandledEvent(
            declared_type=f"message/{message_type or '?'}",
            webhook_event_id=event_id,
            is_redelivery=redelivery,
        )

    if event_type == "follow" and isinstance(reply_token, str) and reply_token:
        return FollowEvent(
            reply_token=reply_token,
            sender_id=sender_id,
            webhook_event_id=event_id,
            is_redelivery=redelivery,
        )

    return UnhandledEvent(
        declared_type=event_type or "unknown",
        webhook_event_id=event_id,
        is_redelivery=redelivery,
    )
