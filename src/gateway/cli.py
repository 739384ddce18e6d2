"""Click CLI for operating the LINE webhook gateway."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from src.audit.logger import validate_audit_chain
from src.config import ConfigurationError, LineChannelSettings
from src.webhook.signature import SignatureError, compute_signature, verify_signature


def _read_body(body_file: str) -> bytes:
    if body_file == "-":
        return sys.stdin.buffer.read()
    return Path(body_file).read_bytes()


@click.group()
def cli() -> None:
    """LINE webhook gateway tools."""


@cli.command()
@click.argument("body_file")
@click.option(
    "--secret", envvar="LINE_CHANNEL_SECRET", required=True,
    help="Channel secret (defaults to LINE_CHANNEL_SECRET).",
)
def sign(body_file: str, secret: str) -> None:
    """Print the X-Line-Signature value for BODY_FILE ('-' for stdin)."""
    click.echo(compute_signature(_read_body(body_file), secret))


@cli.command()
@click.argument("body_file")
@click.argument("signature")
@click.option(
    "--secret", envvar="LINE_CHANNEL_SECRET", required=True,
    help="Channel secret (defaults to LINE_CHANNEL_SECRET).",
)
def verify(body_file: str, signature: str, secret: str) -> None:
    """Check SIGNATURE against BODY_FILE; exit 1 if it does not match."""
    try:
        valid = verify_signature(_read_body(body_file), signature, secret)
    except (SignatureError, ConfigurationError) as exc:
        click.echo(f"invalid: {exc}", err=True)
        sys.exit(1)
    if not valid:
        click.echo("invalid: signature mismatch", err=True)
        sys.exit(1)
    click.echo("valid")


@cli.command("env-check")
def env_check() -> None:
    """Report which required settings are present (values are never printed)."""
    settings = LineChannelSettings.from_env()
    click.echo(json.dumps(settings.presence(), indent=2))
    if settings.missing():
        sys.exit(1)


@cli.command("audit-verify")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False))
def audit_verify(log_path: str) -> None:
    """Validate the hash chain of an audit log."""
    result = validate_audit_chain(Path(log_path))
    if not result.valid:
        click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
        sys.exit(1)
    click.echo("Audit chain intact")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--log-level", default="info", show_default=True)
def serve(host: str, port: int, log_level: str) -> None:
    """Run the webhook server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "src.gateway.app:create_app_from_env",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
    )
