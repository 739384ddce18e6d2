"""Environment configuration for the LINE channel."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, ConfigDict, Field, SecretStr

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.line.me"


class ConfigurationError(Exception):
    """Raised when a required channel setting is missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required setting(s): {', '.join(missing)}")


class LineChannelSettings(BaseModel):
    """Process-wide channel configuration, read once at startup.

    Secrets are held as ``SecretStr`` so they never show up in ``repr`` or
    log output. An incomplete instance is allowed to exist; callers check
    ``require()`` on the request path and treat failure as a deployment
    error rather than an authentication failure.
    """

    model_config = ConfigDict(frozen=True)

    channel_secret: SecretStr = SecretStr("")
    channel_access_token: SecretStr = SecretStr("")
    api_base: str = DEFAULT_API_BASE
    reply_timeout_seconds: float = Field(default=10.0, gt=0)
    shutdown_grace_seconds: float = Field(default=10.0, ge=0)
    audit_log_path: str | None = None

    @classmethod
    def from_env(cls) -> LineChannelSettings:
        settings = cls(
            channel_secret=SecretStr(os.environ.get("LINE_CHANNEL_SECRET", "")),
            channel_access_token=SecretStr(os.environ.get("LINE_CHANNEL_ACCESS_TOKEN", "")),
            api_base=os.environ.get("LINE_API_BASE", DEFAULT_API_BASE),
            reply_timeout_seconds=float(os.environ.get("LINE_REPLY_TIMEOUT_SECONDS", "10")),
            shutdown_grace_seconds=float(os.environ.get("LINE_SHUTDOWN_GRACE_SECONDS", "10")),
            audit_log_path=os.environ.get("AUDIT_LOG_PATH") or None,
        )
        missing = settings.missing()
        if missing:
            logger.error("LINE channel is not configured; missing %s", ", ".join(missing))
        return settings

    def missing(self) -> list[str]:
        """Names of the required environment variables that are empty."""
        missing: list[str] = []
        if not self.channel_secret.get_secret_value():
            missing.append("LINE_CHANNEL_SECRET")
        if not self.channel_access_token.get_secret_value():
            missing.append("LINE_CHANNEL_ACCESS_TOKEN")
        return missing

    def require(self) -> None:
        missing = self.missing()
        if missing:
            raise ConfigurationError(missing)

    def presence(self) -> dict[str, bool]:
        """Report which secrets are set without revealing them."""
        return {
            "hasSecret": bool(self.channel_secret.get_secret_value()),
            "hasToken": bool(self.channel_access_token.get_secret_value()),
        }
