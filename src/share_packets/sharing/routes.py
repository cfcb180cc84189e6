"""Owner share-packet endpoints: issue, list, revoke.

  POST   /api/v1/packets               → issue a packet
  GET    /api/v1/packets               → list the caller's packets
  DELETE /api/v1/packets/{packet_id}   → revoke a packet

Auth contract:
  - Every endpoint requires a verified owner identity.
  - Packets are owned by ``OwnerIdentity.owner_id``; revoking someone
    else's packet returns 403 and is logged.

Token security:
  - The plaintext access token appears once, in the issue response.
  - Listings never include the token digest or passcode digest.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from share_packets.security.auth_guard import get_owner_identity
from share_packets.security.token_verify import OwnerIdentity

from .errors import (
    IssuanceFailed,
    IssuanceRejected,
    PacketNotFound,
    StoreUnavailable,
    Unauthorized,
)
from .issuer import MAX_RECIPIENT_NAME_LENGTH
from .model import PacketContent, SharePacket
from .service import SharePacketService
from .snapshot import build_share_url

MAX_PASSCODE_LENGTH = 128
MAX_SUMMARY_LENGTH = 5000


# ── Request schemas ──────────────────────────────────────────────────


class PacketContentBody(BaseModel):
    """Records selected by the owner for this packet."""

    logs: list[dict[str, Any]] = Field(default_factory=list)
    strategies: list[dict[str, Any]] = Field(default_factory=list)
    summary_message: str = Field(default='', max_length=MAX_SUMMARY_LENGTH)


class CreatePacketRequest(BaseModel):
    """Request body for packet issuance."""

    recipient_name: str = Field(
        ..., min_length=1, max_length=MAX_RECIPIENT_NAME_LENGTH,
        description='Who the packet is for, e.g. "Ms. Johnson"',
    )
    content: PacketContentBody
    passcode: str | None = Field(
        default=None, max_length=MAX_PASSCODE_LENGTH,
        description='Optional passcode the recipient must also enter',
    )


# ── Shared helpers ───────────────────────────────────────────────────


def _error(status_code: int, error: str, detail: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'error': error, 'detail': detail, **extra},
    )


def _store_unavailable() -> JSONResponse:
    return _error(
        503, 'store_unavailable', 'Temporarily unavailable. Try again.',
        retryable=True,
    )


def packet_summary(packet: SharePacket, now: datetime) -> dict[str, Any]:
    """Owner-facing view of a packet; no credentials."""
    return {
        'packet_id': packet.id,
        'recipient_name': packet.recipient_name,
        'generated_at': packet.generated_at.isoformat(),
        'expires_at': packet.expires_at.isoformat(),
        'revoked': packet.revoked,
        'revoked_at': packet.revoked_at.isoformat() if packet.revoked_at else None,
        'has_passcode': packet.has_passcode,
        'views': packet.views,
        'status': packet.status(now).value,
    }


# ── Route factory ────────────────────────────────────────────────────


def create_packet_router(
    service: SharePacketService,
    *,
    share_base_url: str,
) -> APIRouter:
    """Create the owner packet-management router.

    Args:
        service: Share-packet service.
        share_base_url: Origin used to build the returned share link.
    """
    router = APIRouter(tags=['share-packets'])

    @router.post('/api/v1/packets', status_code=201)
    async def issue_packet(
        body: CreatePacketRequest,
        identity: OwnerIdentity = Depends(get_owner_identity),
    ):
        """Issue a packet. The response carries the plaintext token once."""
        try:
            content = PacketContent.build(
                logs=body.content.logs,
                strategies=body.content.strategies,
                summary_message=body.content.summary_message,
            )
            issued = await service.issuer.issue(
                identity.owner_id,
                body.recipient_name,
                content,
                passcode=body.passcode,
            )
        except IssuanceRejected as exc:
            return _error(400, 'invalid_request', exc.detail, field=exc.field)
        except IssuanceFailed:
            return _error(
                503, 'issuance_failed', 'Packet could not be created. Try again.',
                retryable=True,
            )

        return {
            'packet_id': issued.packet_id,
            'access_token': issued.access_token,
            'share_url': build_share_url(share_base_url, issued.access_token),
            'expires_at': issued.expires_at.isoformat(),
            'has_passcode': issued.has_passcode,
        }

    @router.get('/api/v1/packets')
    async def list_packets(
        include_revoked: bool = True,
        identity: OwnerIdentity = Depends(get_owner_identity),
    ):
        """List the caller's packets, newest first."""
        try:
            packets = await service.list_for_owner(
                identity.owner_id, include_revoked=include_revoked,
            )
        except StoreUnavailable:
            return _store_unavailable()
        now = service.clock()
        return {'packets': [packet_summary(p, now) for p in packets]}

    @router.delete('/api/v1/packets/{packet_id}')
    async def revoke_packet(
        packet_id: str,
        identity: OwnerIdentity = Depends(get_owner_identity),
    ):
        """Revoke a packet. Idempotent."""
        try:
            result = await service.revoker.revoke(packet_id, identity.owner_id)
        except PacketNotFound:
            return _error(404, 'packet_not_found', f'Packet {packet_id} not found.')
        except Unauthorized:
            return _error(403, 'forbidden', 'Not the owner of this packet.')
        except StoreUnavailable:
            return _store_unavailable()

        packet = result.packet
        return {
            'packet_id': packet.id,
            'revoked': packet.revoked,
            'revoked_at': packet.revoked_at.isoformat() if packet.revoked_at else None,
            'already_revoked': result.already_revoked,
        }

    return router
