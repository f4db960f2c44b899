"""Security event values and the sinks that receive them."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol
from uuid import UUID

from herit_auth.models.enums import AuthEventKind

logger = logging.getLogger("herit_auth.audit")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class AuthEvent:
    kind: AuthEventKind
    user_id: UUID
    family_id: str | None = None
    occurred_at: dt.datetime = field(default_factory=_utcnow)
    # Rows affected for revocation events.
    affected: int | None = None


class AuditSink(Protocol):
    def emit(self, event: AuthEvent) -> None: ...


class LoggingAuditSink:
    """Writes one line per event to the ``herit_auth.audit`` logger."""

    def emit(self, event: AuthEvent) -> None:
        level = logging.WARNING if event.kind == AuthEventKind.reuse_detected else logging.INFO
        logger.log(
            level,
            "auth_event kind=%s user_id=%s family_id=%s affected=%s at=%s",
            event.kind.value,
            event.user_id,
            event.family_id or "-",
            "-" if event.affected is None else event.affected,
            event.occurred_at.isoformat(),
        )


def emit_all(sink: AuditSink, events: Iterable[AuthEvent]) -> None:
    for event in events:
        try:
            sink.emit(event)
        except Exception:
            # Sink failures never change the authentication outcome.
            logger.exception("Audit sink failed for event kind=%s", event.kind.value)
