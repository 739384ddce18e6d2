"""FastAPI application exposing the LINE webhook endpoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.audit.logger import AuditLogger
from src.config import ConfigurationError, LineChannelSettings
from src.models import AuditEventType, RiskLevel
from src.webhook.dispatcher import EventDispatcher
from src.webhook.events import MalformedPayloadError, parse_events
from src.webhook.reply import LineReplyClient
from src.webhook.signature import SIGNATURE_HEADER, SignatureError, verify_signature

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/line-webhook"
ALLOWED_METHODS = "POST, GET, HEAD"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = LineChannelSettings.from_env()
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    return create_app(settings, audit_logger=audit_logger)


def create_app(
    settings: LineChannelSettings,
    reply_client: LineReplyClient | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the webhook app around an explicit settings object."""
    if reply_client is None:
        reply_client = LineReplyClient(
            access_token=settings.channel_access_token.get_secret_value(),
            api_base=settings.api_base,
            timeout=settings.reply_timeout_seconds,
        )
    dispatcher = EventDispatcher(reply_client, audit_logger=audit_logger)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await dispatcher.drain(timeout=settings.shutdown_grace_seconds)

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None, lifespan=lifespan)
    app.state.dispatcher = dispatcher
    app.state.settings = settings

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/_env-check")
    async def env_check() -> dict[str, bool]:
        return settings.presence()

    @app.api_route(
        WEBHOOK_PATH,
        methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    async def line_webhook(request: Request) -> Response:
        if request.method in ("GET", "HEAD"):
            return PlainTextResponse("ok")
        if request.method != "POST":
            return PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={"Allow": ALLOWED_METHODS},
            )

        source_ip = request.client.host if request.client else None

        try:
            settings.require()
        except ConfigurationError as exc:
            logger.error("LINE webhook misconfigured: %s", exc)
            _audit(
                audit_logger, AuditEventType.CONFIG_ERROR, "failure", RiskLevel.CRITICAL,
                source_ip, missing=exc.missing,
            )
            return JSONResponse({"error": "Webhook not configured"}, status_code=500)

        body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER)

        try:
            valid = verify_signature(
                body, signature, settings.channel_secret.get_secret_value(),
            )
        except SignatureError as exc:
            return _reject(audit_logger, source_ip, str(exc))
        if not valid:
            return _reject(audit_logger, source_ip, "Invalid signature")

        try:
            events = parse_events(body)
        except MalformedPayloadError as exc:
            logger.warning("Rejected signed webhook with malformed body: %s", exc)
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)

        _audit(
            audit_logger, AuditEventType.WEBHOOK_ACCEPTED, "success", RiskLevel.INFO,
            source_ip, events=len(events),
        )
        # Acknowledge first; replies run after the response is sent
        dispatcher.schedule(events)
        return Response(status_code=200)

    return app


def _reject(audit_logger: AuditLogger | None, source_ip: str | None, reason: str) -> Response:
    logger.warning("Rejected LINE webhook from %s: %s", source_ip or "unknown", reason)
    _audit(
        audit_logger, AuditEventType.SIGNATURE_REJECTED, "blocked", RiskLevel.HIGH,
        source_ip, reason=reason,
    )
    return JSONResponse({"error": reason}, status_code=403)


def _audit(
    audit_logger: AuditLogger | None,
    event_type: AuditEventType,
    result: str,
    risk_level: RiskLevel,
    source_ip: str | None,
    **details: object,
) -> None:
    if not audit_logger:
        return
    try:
        audit_logger.record(
            event_type,
            action=f"POST {WEBHOOK_PATH}",
            result=result,
            risk_level=risk_level,
            source_ip=source_ip,
            **details,
        )
    except OSError:
        logger.exception("Could not write audit record")
