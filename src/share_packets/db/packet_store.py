"""Supabase-backed PacketStore.

Persists packets in the ``share_packets`` table via PostgREST (see
``deploy/sql/001_share_packets.sql`` for the schema and the
``increment_packet_views`` function).

Security invariants:
  - ``access_token`` holds the SHA-256 digest; the plaintext is never sent.
  - Revocation only updates rows where ``revoked`` is false, so the first
    ``revoked_at`` survives repeated calls.
  - Ids that are not uuids behave like unknown ids.
  - View counts are incremented inside the database, never read-modify-
    written here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from share_packets.observability.logging import get_logger
from share_packets.sharing.errors import StoreError, StoreUnavailable, TokenCollision
from share_packets.sharing.model import SharePacket, utcnow
from share_packets.sharing.tokens import hash_access_token

from .errors import SupabaseConflictError, SupabaseError
from .supabase_client import SupabaseClient

logger = get_logger(__name__)

_TOKEN_UNIQUE_CONSTRAINT = "share_packets_access_token_key"

# invalid_text_representation: the id is not a uuid, so no row can match.
_MALFORMED_ID = "22P02"


def _translate(operation: str, exc: SupabaseError) -> StoreError:
    logger.warning(
        "packet_store_error",
        operation=operation,
        status=exc.status_code,
        code=exc.code,
    )
    if exc.is_transient or exc.status_code == 0:
        return StoreUnavailable(f"{operation}: {exc.status_code}")
    return StoreError(f"{operation}: {exc.status_code}")


class SupabasePacketStore:
    """PacketStore backed by the ``share_packets`` table."""

    TABLE = "share_packets"
    INCREMENT_VIEWS_RPC = "increment_packet_views"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def _parse(self, operation: str, row: dict[str, Any]) -> SharePacket:
        try:
            return SharePacket.from_record(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("packet_row_invalid", operation=operation, packet_id=row.get("id"))
            raise StoreError(f"{operation}: malformed row") from exc

    async def create(self, packet: SharePacket) -> str:
        row = packet.to_record()
        row.pop("id")  # Assigned by the database.
        try:
            rows = await self._client.insert(self.TABLE, row)
        except SupabaseConflictError as exc:
            if exc.code == "23505" or _TOKEN_UNIQUE_CONSTRAINT in (exc.message or ""):
                raise TokenCollision("access_token already exists") from exc
            raise _translate("create", exc) from exc
        except SupabaseError as exc:
            raise _translate("create", exc) from exc
        if not rows or "id" not in rows[0]:
            raise StoreError("create: insert returned no id")
        return str(rows[0]["id"])

    async def get_by_token(self, token: str) -> SharePacket | None:
        try:
            rows = await self._client.select(
                self.TABLE,
                filters={"access_token": ("eq", hash_access_token(token))},
                limit=1,
            )
        except SupabaseError as exc:
            raise _translate("get_by_token", exc) from exc
        return self._parse("get_by_token", rows[0]) if rows else None

    async def get_by_id(self, packet_id: str) -> SharePacket | None:
        try:
            rows = await self._client.select(
                self.TABLE, filters={"id": ("eq", packet_id)}, limit=1,
            )
        except SupabaseError as exc:
            if exc.code == _MALFORMED_ID:
                return None
            raise _translate("get_by_id", exc) from exc
        return self._parse("get_by_id", rows[0]) if rows else None

    async def set_revoked(
        self, packet_id: str, *, revoked_at: datetime | None = None,
    ) -> SharePacket | None:
        stamp = (revoked_at or utcnow()).isoformat()
        try:
            rows = await self._client.update(
                self.TABLE,
                filters={"id": ("eq", packet_id), "revoked": ("is", False)},
                data={"revoked": True, "revoked_at": stamp},
            )
        except SupabaseError as exc:
            if exc.code == _MALFORMED_ID:
                return None
            raise _translate("set_revoked", exc) from exc
        if rows:
            return self._parse("set_revoked", rows[0])
        # Already revoked (or missing): return the current row unchanged.
        return await self.get_by_id(packet_id)

    async def increment_views(self, packet_id: str) -> int | None:
        try:
            result = await self._client.rpc(
                self.INCREMENT_VIEWS_RPC, {"packet_id": packet_id},
            )
        except SupabaseError as exc:
            if exc.code == _MALFORMED_ID:
                return None
            raise _translate("increment_views", exc) from exc
        if result is None:
            return None
        return int(result)

    async def list_for_owner(self, owner_id: str) -> list[SharePacket]:
        try:
            rows = await self._client.select(
                self.TABLE,
                filters={"owner_id": ("eq", owner_id)},
                order="generated_at.desc",
            )
        except SupabaseError as exc:
            raise _translate("list_for_owner", exc) from exc
        return [self._parse("list_for_owner", row) for row in rows]
