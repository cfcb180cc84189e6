"""Share-packet audit events and token redaction.

Records packet issuance, granted access, denied access and revocation as
immutable events. The packet record itself keeps the durable counters
(``views``, ``revoked``/``revoked_at``); these events are the per-request
history on top of it.

Security invariant:
  Plaintext tokens and passcodes never appear in event data. Only the first
  8 characters of a token are kept for correlation.

This module provides:
  1. ``PacketAuditEvent``: structured audit record.
  2. ``PacketAuditEmitter``: protocol for event sinks.
  3. ``InMemoryPacketAuditEmitter``: test implementation.
  4. ``LoggingPacketAuditEmitter``: writes events to the structured log.
  5. ``redact_token`` / ``redact_string``: re-exported from the logging
     module so audit and log output share one redaction rule.
  6. ``emit_packet_*``: convenience functions for each event type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from share_packets.observability.logging import (
    get_logger,
    redact_string,
    redact_token,
)

# ── Constants ─────────────────────────────────────────────────────────

PACKET_ISSUED = 'packet.issued'
PACKET_ACCESSED = 'packet.accessed'
PACKET_DENIED = 'packet.denied'
PACKET_REVOKED = 'packet.revoked'


# ── Audit event model ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PacketAuditEvent:
    """Structured audit event for packet operations.

    Attributes:
        event_type: One of packet.issued, packet.accessed, packet.denied,
            packet.revoked.
        packet_id: Record id, when known.
        owner_id: Owning family account, when known.
        token_prefix: First 8 chars of the token (correlation only).
        actor_id: Authenticated owner performing the action, if any.
        outcome: Gate outcome for access events.
        detail: Extra context (e.g. ``already_revoked``).
        views: View count after a granted access.
        timestamp: When the event occurred.
    """

    event_type: str
    packet_id: str | None = None
    owner_id: str = ''
    token_prefix: str = '<redacted>'
    actor_id: str = ''
    outcome: str = ''
    detail: str = ''
    views: int | None = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        """Log/JSON form; only the token prefix is included."""
        return {
            'event_type': self.event_type,
            'packet_id': self.packet_id,
            'owner_id': self.owner_id,
            'token_prefix': self.token_prefix,
            'actor_id': self.actor_id,
            'outcome': self.outcome,
            'detail': self.detail,
            'views': self.views,
            'timestamp': self.timestamp.isoformat(),
        }


# ── Emitters ─────────────────────────────────────────────────────────


class PacketAuditEmitter(Protocol):
    """Where packet audit events go."""

    async def emit(self, event: PacketAuditEvent) -> None: ...


class InMemoryPacketAuditEmitter:
    """Keeps events in a list for inspection."""

    def __init__(self) -> None:
        self.events: list[PacketAuditEvent] = []

    async def emit(self, event: PacketAuditEvent) -> None:
        self.events.append(event)

    def find(
        self,
        event_type: str | None = None,
        packet_id: str | None = None,
    ) -> list[PacketAuditEvent]:
        """Filter events by type and/or packet."""
        result = self.events
        if event_type:
            result = [e for e in result if e.event_type == event_type]
        if packet_id:
            result = [e for e in result if e.packet_id == packet_id]
        return result


class LoggingPacketAuditEmitter:
    """Emit audit events as structured log lines."""

    def __init__(self, logger_name: str = 'share_packets.audit') -> None:
        self._logger = get_logger(logger_name)

    async def emit(self, event: PacketAuditEvent) -> None:
        self._logger.info('audit_event', **event.to_dict())


# ── Convenience emitters ─────────────────────────────────────────────


async def emit_packet_issued(
    emitter: PacketAuditEmitter,
    *,
    packet_id: str,
    owner_id: str,
    token: str,
    has_passcode: bool,
) -> PacketAuditEvent:
    event = PacketAuditEvent(
        event_type=PACKET_ISSUED,
        packet_id=packet_id,
        owner_id=owner_id,
        token_prefix=redact_token(token),
        actor_id=owner_id,
        detail='passcode' if has_passcode else '',
    )
    await emitter.emit(event)
    return event


async def emit_packet_accessed(
    emitter: PacketAuditEmitter,
    *,
    packet_id: str,
    owner_id: str,
    token: str,
    views: int,
) -> PacketAuditEvent:
    event = PacketAuditEvent(
        event_type=PACKET_ACCESSED,
        packet_id=packet_id,
        owner_id=owner_id,
        token_prefix=redact_token(token),
        outcome='granted',
        views=views,
    )
    await emitter.emit(event)
    return event


async def emit_packet_denied(
    emitter: PacketAuditEmitter,
    *,
    token: str | None,
    outcome: str,
    packet_id: str | None = None,
    owner_id: str = '',
    detail: str = '',
) -> PacketAuditEvent:
    event = PacketAuditEvent(
        event_type=PACKET_DENIED,
        packet_id=packet_id,
        owner_id=owner_id,
        token_prefix=redact_token(token),
        outcome=outcome,
        detail=detail,
    )
    await emitter.emit(event)
    return event


async def emit_packet_revoked(
    emitter: PacketAuditEmitter,
    *,
    packet_id: str,
    owner_id: str,
    actor_id: str,
    detail: str = '',
) -> PacketAuditEvent:
    event = PacketAuditEvent(
        event_type=PACKET_REVOKED,
        packet_id=packet_id,
        owner_id=owner_id,
        actor_id=actor_id,
        detail=detail,
    )
    await emitter.emit(event)
    return event
