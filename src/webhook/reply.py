"""LINE reply API client.

Reply tokens are single use, so a failed reply is never retried: the token
is most likely already consumed or expired and a second attempt would fail
the same way.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_REPLY_PATH = "/v2/bot/message/reply"
_MAX_MESSAGES_PER_REPLY = 5


class ReplyError(Exception):
    """Raised when the reply API rejects the call or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def text_message(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


class LineReplyClient:
    """Sends replies through the Messaging API using a channel access token."""

    def __init__(
        self,
        access_token: str,
        api_base: str = "https://api.line.me",
        timeout: float = 10.0,
    ) -> None:
        self._access_token = access_token
        self._url = f"{api_base.rstrip('/')}{_REPLY_PATH}"
        self._timeout = timeout

    async def reply(self, reply_token: str, messages: list[dict[str, Any]]) -> None:
        """Send ``messages`` once for ``reply_token``.

        TLS certificate verification enabled; each call carries its own timeout.
        """
        if not messages:
            raise ValueError("At least one message is required")
        if len(messages) > _MAX_MESSAGES_PER_REPLY:
            raise ValueError(
                f"A reply carries at most {_MAX_MESSAGES_PER_REPLY} messages, got {len(messages)}"
            )

        payload = {"replyToken": reply_token, "messages": messages}
        headers = {"Authorization": f"Bearer {self._access_token}"}

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ReplyError("Reply API timed out") from exc
        except httpx.HTTPError as exc:
            raise ReplyError(f"Reply API unreachable: {type(exc).__name__}") from exc

        if resp.status_code >= 400:
            raise ReplyError(
                f"Reply API returned {resp.status_code}: {_error_detail(resp)}",
                status_code=resp.status_code,
            )
        logger.debug("Reply accepted (status %s)", resp.status_code)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("message", body))
    return str(body)
