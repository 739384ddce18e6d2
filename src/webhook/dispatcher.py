"""Concurrent per-event handling for verified webhook payloads.

Each event is handled independently. A failed reply is logged and dropped;
it never cancels sibling handlers and never reaches the HTTP caller, which
has already been answered by the time handlers run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.models import AuditEventType, RiskLevel
from src.webhook.models import (
    EventOutcome,
    FollowEvent,
    LineEvent,
    MessageEvent,
    OutcomeStatus,
    UnhandledEvent,
)
from src.webhook.reply import text_message

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.webhook.reply import LineReplyClient

logger = logging.getLogger(__name__)

FOLLOW_GREETING = "Thanks for adding us as a friend! Send us a message any time."


def echo_text(text: str) -> str:
    return f'You said: "{text}"'


class EventDispatcher:
    """Fans events out to handlers and keeps background batches alive."""

    def __init__(
        self,
        reply_client: LineReplyClient,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._reply_client = reply_client
        self._audit = audit_logger
        self._tasks: set[asyncio.Task[list[EventOutcome]]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, events: list[LineEvent]) -> asyncio.Task[list[EventOutcome]]:
        """Start dispatching ``events`` without waiting for the result.

        The task is referenced here until it finishes so it is neither
        garbage collected nor bound to the request that started it.
        """
        task = asyncio.get_running_loop().create_task(self.dispatch(events))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight batches, e.g. on shutdown."""
        if not self._tasks:
            return
        _, not_done = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not_done:
            logger.warning("%d webhook batch(es) still running after drain timeout", len(not_done))

    async def dispatch(self, events: list[LineEvent]) -> list[EventOutcome]:
        """Handle all events concurrently and settle every one of them."""
        if not events:
            return []

        results = await asyncio.gather(
            *(self.handle(event) for event in events),
            return_exceptions=True,
        )
        outcomes: list[EventOutcome] = []
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                # handle() catches Exception; this is cancellation or worse
                logger.error("Handler for %s event aborted: %r", event.kind, result)
                outcomes.append(EventOutcome(
                    event_type=event.kind,
                    status=OutcomeStatus.FAILED,
                    webhook_event_id=event.webhook_event_id,
                    error=repr(result),
                ))
            else:
                outcomes.append(result)

        counts = {status: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1
        logger.info(
            "Dispatched %d event(s): %d handled, %d skipped, %d failed",
            len(outcomes),
            counts[OutcomeStatus.HANDLED],
            counts[OutcomeStatus.SKIPPED],
            counts[OutcomeStatus.FAILED],
        )
        return outcomes

    async def handle(self, event: LineEvent) -> EventOutcome:
        """received -> classified -> handled | skipped | failed."""
        outcome = EventOutcome(
            event_type=event.kind,
            status=OutcomeStatus.SKIPPED,
            webhook_event_id=event.webhook_event_id,
        )

        if isinstance(event, UnhandledEvent):
            logger.debug("Ignoring %s event", event.declared_type)
            return outcome

        if isinstance(event, MessageEvent):
            text = event.text.strip()
            if not text:
                return outcome
            reply = echo_text(text)
        elif isinstance(event, FollowEvent):
            reply = FOLLOW_GREETING
        else:
            return outcome

        try:
            await self._reply_client.reply(event.reply_token, [text_message(reply)])
        except Exception as exc:
            logger.error(
                "Reply failed for %s event %s: %s",
                event.kind, event.webhook_event_id or "-", exc,
            )
            outcome.status = OutcomeStatus.FAILED
            outcome.error = str(exc)
            self._record(event, AuditEventType.REPLY_FAILED, "failure", str(exc))
            return outcome

        outcome.status = OutcomeStatus.HANDLED
        self._record(event, AuditEventType.REPLY_SENT, "success")
        return outcome

    def _record(
        self,
        event: MessageEvent | FollowEvent,
        event_type: AuditEventType,
        result: str,
        error: str | None = None,
    ) -> None:
        if not self._audit:
            return
        details: dict[str, object] = {
            "event": event.kind,
            "webhook_event_id": event.webhook_event_id,
            "redelivery": event.is_redelivery,
        }
        if error:
            details["error"] = error
        try:
            self._audit.record(
                event_type,
                action="reply",
                result=result,
                risk_level=RiskLevel.LOW if error else RiskLevel.INFO,
                user_id=event.sender_id,
                **details,
            )
        except OSError:
            logger.exception("Could not write audit record")
