"""Public access gate for share packets.

Evaluates one unauthenticated request (token plus optional passcode)
against the current store record. Checks run in a fixed order, and the
order decides what a failing caller learns:

  1. no packet for the token      -> TOKEN_INVALID
  2. revoked                      -> REVOKED
  3. now >= expires_at            -> EXPIRED
  4. passcode set, none supplied  -> PASSCODE_REQUIRED
  5. passcode set, mismatch       -> PASSCODE_INVALID
  6. otherwise                    -> GRANTED

TOKEN_INVALID, REVOKED and EXPIRED share the public category
``unavailable``. On GRANTED the store's view counter is incremented
atomically before any content is returned.

Failure semantics:
  - Store failures raise ``StoreUnavailable``; they are never turned into
    a grant or a TOKEN_INVALID.
  - Anything unexpected while evaluating a record denies the request.
  - Nothing about a packet is cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from share_packets.observability.logging import get_logger
from share_packets.observability.metrics import (
    PACKET_ACCESS_TOTAL,
    STORE_UNAVAILABLE_TOTAL,
)

from .audit import (
    PacketAuditEmitter,
    emit_packet_accessed,
    emit_packet_denied,
    redact_token,
)
from .errors import StoreError, StoreUnavailable
from .model import Clock, PacketContent, SharePacket, utcnow
from .passcode import PasscodeHasher, normalize_passcode
from .store import PacketStore
from .tokens import is_well_formed_token

logger = get_logger(__name__)


class AccessOutcome(str, Enum):
    TOKEN_INVALID = 'token_invalid'
    REVOKED = 'revoked'
    EXPIRED = 'expired'
    PASSCODE_REQUIRED = 'passcode_required'
    PASSCODE_INVALID = 'passcode_invalid'
    GRANTED = 'granted'

    @property
    def public_category(self) -> str:
        """What the unauthenticated caller is allowed to learn."""
        if self in _UNAVAILABLE:
            return 'unavailable'
        return self.value


_UNAVAILABLE = frozenset({
    AccessOutcome.TOKEN_INVALID,
    AccessOutcome.REVOKED,
    AccessOutcome.EXPIRED,
})


@dataclass(frozen=True, slots=True)
class AccessResult:
    """Decision for one access request.

    Content fields are populated only when ``outcome`` is GRANTED.
    """

    outcome: AccessOutcome
    recipient_name: str | None = None
    expires_at: datetime | None = None
    content: PacketContent | None = None
    views: int | None = None

    @property
    def granted(self) -> bool:
        return self.outcome is AccessOutcome.GRANTED

    @property
    def requires_passcode(self) -> bool:
        return self.outcome in (
            AccessOutcome.PASSCODE_REQUIRED,
            AccessOutcome.PASSCODE_INVALID,
        )


def evaluate_packet(
    packet: SharePacket | None,
    passcode: str | None,
    now: datetime,
    hasher: PasscodeHasher,
) -> AccessOutcome:
    """Pure decision function for a fetched record; no side effects."""
    if packet is None:
        return AccessOutcome.TOKEN_INVALID
    if packet.revoked:
        return AccessOutcome.REVOKED
    if packet.is_expired(now):
        return AccessOutcome.EXPIRED
    if packet.has_passcode:
        if passcode is None or not normalize_passcode(passcode):
            return AccessOutcome.PASSCODE_REQUIRED
        if not hasher.verify(passcode, packet.passcode_hash):
            return AccessOutcome.PASSCODE_INVALID
    return AccessOutcome.GRANTED


class PacketAccessGate:
    """Verify a presented token (and passcode) and release packet content.

    Args:
        store: Packet store; read on every call.
        hasher: Passcode hasher.
        clock: Returns the current UTC time.
        audit: Optional audit sink.
    """

    def __init__(
        self,
        store: PacketStore,
        *,
        hasher: PasscodeHasher | None = None,
        clock: Clock = utcnow,
        audit: PacketAuditEmitter | None = None,
    ) -> None:
        self._store = store
        self._hasher = hasher or PasscodeHasher()
        self._clock = clock
        self._audit = audit

    async def access(
        self, token: str | None, passcode: str | None = None,
    ) -> AccessResult:
        """Evaluate one access request.

        Raises:
            StoreUnavailable: The store could not be read or the view
                counter could not be updated. No content is released.
        """
        if not is_well_formed_token(token):
            return await self._deny(AccessOutcome.TOKEN_INVALID, token, None)

        try:
            packet = await self._store.get_by_token(token)
        except StoreUnavailable as exc:
            self._note_unavailable('get_by_token', exc)
            raise
        except StoreError as exc:
            self._note_unavailable('get_by_token', exc)
            raise StoreUnavailable('get_by_token failed') from exc

        try:
            outcome = evaluate_packet(packet, passcode, self._clock(), self._hasher)
        except Exception:
            logger.exception(
                'packet_evaluation_failed',
                token_prefix=redact_token(token),
                packet_id=packet.id if packet else None,
            )
            outcome = AccessOutcome.TOKEN_INVALID

        if outcome is not AccessOutcome.GRANTED:
            return await self._deny(outcome, token, packet)

        try:
            views = await self._store.increment_views(packet.id)
        except StoreUnavailable as exc:
            self._note_unavailable('increment_views', exc)
            raise
        except StoreError as exc:
            self._note_unavailable('increment_views', exc)
            raise StoreUnavailable('increment_views failed') from exc
        if views is None:
            return await self._deny(AccessOutcome.TOKEN_INVALID, token, packet)

        PACKET_ACCESS_TOTAL.labels(outcome=outcome.value).inc()
        logger.info('packet_access_granted', packet_id=packet.id, views=views)
        # The view is already counted, so the content must go out even if the
        # audit sink fails.
        if self._audit is not None:
            try:
                await emit_packet_accessed(
                    self._audit,
                    packet_id=packet.id,
                    owner_id=packet.owner_id,
                    token=token,
                    views=views,
                )
            except Exception:
                logger.exception('packet_audit_failed', packet_id=packet.id, views=views)

        return AccessResult(
            outcome=outcome,
            recipient_name=packet.recipient_name,
            expires_at=packet.expires_at,
            content=packet.content,
            views=views,
        )

    async def _deny(
        self,
        outcome: AccessOutcome,
        token: str | None,
        packet: SharePacket | None,
    ) -> AccessResult:
        PACKET_ACCESS_TOTAL.labels(outcome=outcome.value).inc()
        logger.info(
            'packet_access_denied',
            outcome=outcome.value,
            packet_id=packet.id if packet else None,
            token_prefix=redact_token(token),
        )
        if self._audit is not None:
            await emit_packet_denied(
                self._audit,
                token=token,
                outcome=outcome.value,
                packet_id=packet.id if packet else None,
                owner_id=packet.owner_id if packet else '',
            )
        return AccessResult(outcome=outcome)

    def _note_unavailable(self, operation: str, exc: Exception) -> None:
        STORE_UNAVAILABLE_TOTAL.labels(operation=operation).inc()
        logger.warning(
            'packet_store_unavailable', operation=operation, error=type(exc).__name__,
        )
