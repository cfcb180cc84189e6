"""Wiring of issuer, gate and revoker over one store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from share_packets.observability.metrics import STORE_UNAVAILABLE_TOTAL

from .audit import PacketAuditEmitter
from .errors import StoreError, StoreUnavailable
from .gate import PacketAccessGate
from .issuer import DEFAULT_TTL, PacketIssuer
from .model import Clock, SharePacket, utcnow
from .passcode import PasscodeHasher
from .revocation import PacketRevoker
from .store import PacketStore
from .tokens import TokenGenerator, generate_access_token


@dataclass(frozen=True)
class SharePacketService:
    store: PacketStore
    issuer: PacketIssuer
    gate: PacketAccessGate
    revoker: PacketRevoker
    clock: Clock = utcnow

    @classmethod
    def build(
        cls,
        store: PacketStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock = utcnow,
        audit: PacketAuditEmitter | None = None,
        token_generator: TokenGenerator = generate_access_token,
    ) -> SharePacketService:
        hasher = PasscodeHasher()
        return cls(
            store=store,
            issuer=PacketIssuer(
                store,
                ttl=ttl,
                token_generator=token_generator,
                hasher=hasher,
                clock=clock,
                audit=audit,
            ),
            gate=PacketAccessGate(store, hasher=hasher, clock=clock, audit=audit),
            revoker=PacketRevoker(store, clock=clock, audit=audit),
            clock=clock,
        )

    async def list_for_owner(
        self, owner_id: str, *, include_revoked: bool = True,
    ) -> list[SharePacket]:
        """Owner's packets, newest first."""
        try:
            packets = await self.store.list_for_owner(owner_id)
        except StoreError as exc:
            STORE_UNAVAILABLE_TOTAL.labels(operation='list_for_owner').inc()
            raise StoreUnavailable('list_for_owner failed') from exc
        if not include_revoked:
            packets = [p for p in packets if not p.revoked]
        return packets
