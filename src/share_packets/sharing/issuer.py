"""Packet issuance.

``PacketIssuer.issue`` validates owner input, freezes the snapshot, fixes
the expiry window, generates the access token, hashes an optional passcode
and performs a single durable write. The plaintext token is returned to the
caller and otherwise only exists as a digest in the store; it is never
logged.

A token collision reported by the store's unique index is retried with a
fresh token up to ``max_token_attempts`` times. Any other store failure
surfaces as ``IssuanceFailed``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from share_packets.observability.logging import get_logger
from share_packets.observability.metrics import PACKETS_ISSUED_TOTAL

from .audit import PacketAuditEmitter, emit_packet_issued, redact_token
from .errors import IssuanceFailed, IssuanceRejected, StoreError, TokenCollision
from .model import Clock, PacketContent, SharePacket, utcnow
from .passcode import PasscodeHasher, normalize_passcode
from .store import PacketStore
from .tokens import TokenGenerator, generate_access_token, hash_access_token

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(days=7)
MAX_TOKEN_ATTEMPTS = 3
MAX_RECIPIENT_NAME_LENGTH = 200


@dataclass(frozen=True, slots=True)
class IssuedPacket:
    """Result of a successful issuance.

    ``access_token`` is the plaintext token; this is the only place it is
    ever handed out.
    """

    packet_id: str
    access_token: str
    expires_at: datetime
    has_passcode: bool

    def __repr__(self) -> str:
        return (
            f'IssuedPacket(packet_id={self.packet_id!r}, '
            f'access_token={redact_token(self.access_token)!r}, '
            f'expires_at={self.expires_at!r}, has_passcode={self.has_passcode!r})'
        )


class PacketIssuer:
    """Create share packets.

    Args:
        store: Packet store.
        ttl: Validity window applied to every packet.
        token_generator: Source of plaintext tokens.
        hasher: Passcode hasher.
        clock: Returns the current UTC time.
        audit: Optional audit sink.
        max_token_attempts: Insert attempts before giving up on collisions.
    """

    def __init__(
        self,
        store: PacketStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        token_generator: TokenGenerator = generate_access_token,
        hasher: PasscodeHasher | None = None,
        clock: Clock = utcnow,
        audit: PacketAuditEmitter | None = None,
        max_token_attempts: int = MAX_TOKEN_ATTEMPTS,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError('ttl must be positive')
        self._store = store
        self._ttl = ttl
        self._generate = token_generator
        self._hasher = hasher or PasscodeHasher()
        self._clock = clock
        self._audit = audit
        self._max_attempts = max(1, max_token_attempts)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def issue(
        self,
        owner_id: str,
        recipient_name: str,
        content: PacketContent | Mapping[str, Any],
        passcode: str | None = None,
    ) -> IssuedPacket:
        """Issue a new packet.

        Raises:
            IssuanceRejected: Invalid owner, recipient, content or passcode.
            IssuanceFailed: The store could not persist the packet.
        """
        if not owner_id or not owner_id.strip():
            raise IssuanceRejected('owner_id', 'must not be empty')

        recipient = (recipient_name or '').strip()
        if not recipient:
            raise IssuanceRejected('recipient_name', 'must not be empty')
        if len(recipient) > MAX_RECIPIENT_NAME_LENGTH:
            raise IssuanceRejected(
                'recipient_name',
                f'must be at most {MAX_RECIPIENT_NAME_LENGTH} characters',
            )

        if not isinstance(content, PacketContent):
            try:
                content = PacketContent.from_dict(content)
            except IssuanceRejected:
                raise
            except (AttributeError, TypeError, ValueError) as exc:
                raise IssuanceRejected('content', str(exc)) from exc
        if content.is_empty:
            raise IssuanceRejected('content', 'must include at least one record or a message')

        passcode_hash = None
        if passcode is not None:
            if not normalize_passcode(passcode):
                raise IssuanceRejected('passcode', 'must not be blank')
            passcode_hash = self._hasher.hash(passcode)

        now = self._clock()
        expires_at = now + self._ttl

        for attempt in range(1, self._max_attempts + 1):
            token = self._generate()
            packet = SharePacket(
                id='',  # Assigned by the store.
                access_token=hash_access_token(token),
                owner_id=owner_id,
                recipient_name=recipient,
                content=content,
                generated_at=now,
                expires_at=expires_at,
                has_passcode=passcode_hash is not None,
                passcode_hash=passcode_hash,
            )
            try:
                packet_id = await self._store.create(packet)
            except TokenCollision:
                logger.warning(
                    'packet_token_collision', owner_id=owner_id, attempt=attempt,
                )
                continue
            except StoreError as exc:
                logger.error(
                    'packet_issue_failed',
                    owner_id=owner_id,
                    error=type(exc).__name__,
                )
                raise IssuanceFailed('Packet could not be saved') from exc
            break
        else:
            raise IssuanceFailed('Could not allocate a unique access token')

        PACKETS_ISSUED_TOTAL.labels(passcode=str(packet.has_passcode).lower()).inc()
        logger.info(
            'packet_issued',
            packet_id=packet_id,
            owner_id=owner_id,
            has_passcode=packet.has_passcode,
            expires_at=expires_at.isoformat(),
        )
        if self._audit is not None:
            await emit_packet_issued(
                self._audit,
                packet_id=packet_id,
                owner_id=owner_id,
                token=token,
                has_passcode=packet.has_passcode,
            )

        return IssuedPacket(
            packet_id=packet_id,
            access_token=token,
            expires_at=expires_at,
            has_passcode=packet.has_passcode,
        )
