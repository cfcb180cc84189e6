"""Owner-initiated revocation.

Revocation flips the packet's ``revoked`` flag; the record and its view
count are kept as history. Revoking an already revoked packet succeeds
without changing anything, including the original ``revoked_at``.

The caller's identity comes from the authentication layer; this module only
checks that it matches the packet's ``owner_id``.
"""

from __future__ import annotations

from dataclasses import dataclass

from share_packets.observability.logging import get_logger
from share_packets.observability.metrics import (
    PACKETS_REVOKED_TOTAL,
    STORE_UNAVAILABLE_TOTAL,
)

from .audit import PacketAuditEmitter, emit_packet_revoked
from .errors import PacketNotFound, StoreError, StoreUnavailable, Unauthorized
from .model import Clock, SharePacket, utcnow
from .store import PacketStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RevocationResult:
    packet: SharePacket
    already_revoked: bool


class PacketRevoker:
    def __init__(
        self,
        store: PacketStore,
        *,
        clock: Clock = utcnow,
        audit: PacketAuditEmitter | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._audit = audit

    async def revoke(self, packet_id: str, owner_id: str) -> RevocationResult:
        """Revoke ``packet_id`` on behalf of ``owner_id``.

        Raises:
            PacketNotFound: No such packet.
            Unauthorized: ``owner_id`` does not own the packet.
            StoreUnavailable: The store could not be read or written.
        """
        try:
            packet = await self._store.get_by_id(packet_id)
        except StoreError as exc:
            STORE_UNAVAILABLE_TOTAL.labels(operation='get_by_id').inc()
            raise StoreUnavailable('get_by_id failed') from exc
        if packet is None:
            raise PacketNotFound(packet_id)

        if packet.owner_id != owner_id:
            logger.warning(
                'packet_revoke_unauthorized', packet_id=packet_id, actor_id=owner_id,
            )
            raise Unauthorized(packet_id, owner_id)

        already_revoked = packet.revoked
        if not already_revoked:
            try:
                updated = await self._store.set_revoked(
                    packet_id, revoked_at=self._clock(),
                )
            except StoreError as exc:
                STORE_UNAVAILABLE_TOTAL.labels(operation='set_revoked').inc()
                raise StoreUnavailable('set_revoked failed') from exc
            if updated is None:
                raise PacketNotFound(packet_id)
            packet = updated

        PACKETS_REVOKED_TOTAL.labels(already_revoked=str(already_revoked).lower()).inc()
        logger.info(
            'packet_revoked',
            packet_id=packet_id,
            owner_id=owner_id,
            already_revoked=already_revoked,
        )
        if self._audit is not None:
            await emit_packet_revoked(
                self._audit,
                packet_id=packet_id,
                owner_id=packet.owner_id,
                actor_id=owner_id,
                detail='already_revoked' if already_revoked else '',
            )
        return RevocationResult(packet=packet, already_revoked=already_revoked)
