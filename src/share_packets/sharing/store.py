"""Packet store boundary and in-memory implementation.

The issuer, gate and revoker depend only on ``PacketStore``. The four core
operations are ``create``, ``get_by_token``, ``set_revoked`` and
``increment_views``; ``get_by_id`` and ``list_for_owner`` back the owner
endpoints.

Contract for implementations:
  - ``create`` enforces uniqueness of ``access_token`` and raises
    ``TokenCollision`` on a duplicate.
  - ``get_by_token`` takes the *plaintext* token and looks up its digest.
  - ``set_revoked`` is idempotent and keeps the first ``revoked_at``.
  - ``increment_views`` is an atomic store-side increment returning the new
    count.
  - Transient failures raise ``StoreUnavailable``.
  - Records are never deleted.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Protocol, runtime_checkable

from .errors import TokenCollision
from .model import SharePacket, utcnow
from .tokens import hash_access_token


# ── Repository protocol ──────────────────────────────────────────────


@runtime_checkable
class PacketStore(Protocol):
    """Abstract share-packet storage.

    Implementations: InMemoryPacketStore (testing, local mode),
    SupabasePacketStore (production).
    """

    async def create(self, packet: SharePacket) -> str: ...

    async def get_by_token(self, token: str) -> SharePacket | None: ...

    async def set_revoked(
        self, packet_id: str, *, revoked_at: datetime | None = None,
    ) -> SharePacket | None: ...

    async def increment_views(self, packet_id: str) -> int | None: ...

    async def get_by_id(self, packet_id: str) -> SharePacket | None: ...

    async def list_for_owner(self, owner_id: str) -> list[SharePacket]: ...


# ── In-memory implementation ─────────────────────────────────────────


class InMemoryPacketStore:
    """Dict-backed store for tests and local development.

    ``SharePacket`` and ``PacketContent`` are frozen, so handing out the
    stored instances cannot leak mutations back into the store.
    """

    def __init__(self) -> None:
        self._packets: dict[str, SharePacket] = {}
        self._by_token: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, packet: SharePacket) -> str:
        async with self._lock:
            if packet.access_token in self._by_token:
                raise TokenCollision('access_token already exists')
            packet_id = str(uuid.uuid4())
            self._packets[packet_id] = replace(packet, id=packet_id)
            self._by_token[packet.access_token] = packet_id
            return packet_id

    async def get_by_token(self, token: str) -> SharePacket | None:
        packet_id = self._by_token.get(hash_access_token(token))
        if packet_id is None:
            return None
        return self._packets.get(packet_id)

    async def get_by_id(self, packet_id: str) -> SharePacket | None:
        return self._packets.get(packet_id)

    async def set_revoked(
        self, packet_id: str, *, revoked_at: datetime | None = None,
    ) -> SharePacket | None:
        async with self._lock:
            packet = self._packets.get(packet_id)
            if packet is None:
                return None
            if not packet.revoked:
                packet = replace(
                    packet, revoked=True, revoked_at=revoked_at or utcnow(),
                )
                self._packets[packet_id] = packet
            return packet

    async def increment_views(self, packet_id: str) -> int | None:
        async with self._lock:
            packet = self._packets.get(packet_id)
            if packet is None:
                return None
            packet = replace(packet, views=packet.views + 1)
            self._packets[packet_id] = packet
            return packet.views

    async def list_for_owner(self, owner_id: str) -> list[SharePacket]:
        result = [p for p in self._packets.values() if p.owner_id == owner_id]
        return sorted(result, key=lambda p: p.generated_at, reverse=True)

    def __len__(self) -> int:
        return len(self._packets)
