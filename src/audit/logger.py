"""Webhook audit trail: append-only JSON Lines with rotation and a hash chain.

Each line carries ``prev_hash``, the SHA-256 of the previous line, so a
deleted or edited record breaks the chain at a detectable position.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from src.models import AuditEvent, AuditEventType, RiskLevel


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every record's prev_hash matches the line before it."""
    text = log_path.read_text().strip()
    if not text:
        return ChainValidationResult(valid=True)

    lines = text.split("\n")
    prev_line: str | None = None
    for lineno, line in enumerate(lines, start=1):
        entry = json.loads(line)
        expected = None if prev_line is None else hashlib.sha256(prev_line.encode()).hexdigest()
        if entry.get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=lineno)
        prev_line = line

    return ChainValidationResult(valid=True)


class AuditLogger:
    """Structured audit log for webhook security and delivery events."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line: str | None = None
        # Resume the chain from an existing file
        if self.log_path.exists() and self.log_path.stat().st_size > 0:
            text = self.log_path.read_text().strip()
            if text:
                self._last_line = text.split("\n")[-1]

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        max_bytes = int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760"))
        backup_count = int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5"))
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def _backup(self, index: int) -> Path:
        return self.log_path.parent / f"{self.log_path.name}.{index}"

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return

        oldest = self._backup(self._backup_count)
        if oldest.exists():
            oldest.unlink()
        for i in range(self._backup_count - 1, 0, -1):
            if self._backup(i).exists():
                self._backup(i).rename(self._backup(i + 1))
        self.log_path.rename(self._backup(1))

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        prev_hash: str | None = None
        if self._last_line is not None:
            prev_hash = hashlib.sha256(self._last_line.encode()).hexdigest()

        data = json.loads(event.model_dump_json())
        data["prev_hash"] = prev_hash
        line = json.dumps(data, separators=(",", ":"), ensure_ascii=False)

        lock_file = self.log_path.parent / f".{self.log_path.name}.lock"
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                self._maybe_rotate()
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

        self._last_line = line

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        result: str,
        risk_level: RiskLevel = RiskLevel.INFO,
        source_ip: str | None = None,
        user_id: str | None = None,
        **details: object,
    ) -> None:
        """Shorthand for building and logging an AuditEvent."""
        self.log(AuditEvent(
            event_type=event_type,
            action=action,
            result=result,
            risk_level=risk_level,
            source_ip=source_ip,
            user_id=user_id,
            details=details or None,
        ))
