"""Public share-packet access endpoint.

  POST /api/v1/public/packets/access   body: {token, passcode?}

Responses:
  - 200: ``{recipient_name, expires_at, content}``.
  - 401: ``passcode_required`` (``requires_passcode: true``).
  - 403: ``passcode_invalid`` (``requires_passcode: true``).
  - 404: ``packet_unavailable`` for unknown, revoked and expired tokens
    alike.
  - 429: too many attempts from this client.
  - 503: store unavailable; retry.

The token travels in the body, not the path, so it stays out of access
logs. Every response is marked ``Cache-Control: no-store``.

This module provides:
  ``create_packet_access_router``: FastAPI router factory.
"""

from __future__ import annotations

import math
from itertools import count

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from share_packets.observability.logging import get_logger
from share_packets.rate_limiter import RateLimitExceeded, SlidingWindowCounter

from .errors import StoreUnavailable
from .gate import AccessOutcome, PacketAccessGate

logger = get_logger(__name__)

NO_STORE_HEADERS = {
    'Cache-Control': 'no-store',
    'Pragma': 'no-cache',
    'Referrer-Policy': 'no-referrer',
}
PRUNE_EVERY = 1000


# ── Request schemas ──────────────────────────────────────────────────


class AccessPacketRequest(BaseModel):
    """Request body presented by a recipient."""

    token: str = Field(..., max_length=256, description='Token from the share link')
    passcode: str | None = Field(default=None, max_length=128)


# ── Response helpers ─────────────────────────────────────────────────


def _respond(status_code: int, content: dict, **headers: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={**NO_STORE_HEADERS, **headers},
    )


_UNAVAILABLE_BODY = {
    'error': 'packet_unavailable',
    'detail': 'This share link is no longer available.',
}


def _denial(outcome: AccessOutcome) -> JSONResponse:
    if outcome is AccessOutcome.PASSCODE_REQUIRED:
        return _respond(401, {
            'error': 'passcode_required',
            'detail': 'Enter the passcode to view this packet.',
            'requires_passcode': True,
        })
    if outcome is AccessOutcome.PASSCODE_INVALID:
        return _respond(403, {
            'error': 'passcode_invalid',
            'detail': 'The passcode is incorrect.',
            'requires_passcode': True,
        })
    return _respond(404, dict(_UNAVAILABLE_BODY))


def _client_key(request: Request) -> str:
    return request.client.host if request.client else 'unknown'


# ── Route factory ────────────────────────────────────────────────────


def create_packet_access_router(
    gate: PacketAccessGate,
    *,
    limiter: SlidingWindowCounter | None = None,
) -> APIRouter:
    """Create the public access router.

    Args:
        gate: Access gate evaluating each request.
        limiter: Optional per-client attempt limiter.
    """
    router = APIRouter(tags=['share-packet-access'])
    calls = count(1)

    @router.post('/api/v1/public/packets/access')
    async def access_packet(body: AccessPacketRequest, request: Request):
        """Release packet content if the token (and passcode) check out."""
        if limiter is not None:
            if next(calls) % PRUNE_EVERY == 0:
                limiter.prune()
            try:
                limiter.check(_client_key(request))
            except RateLimitExceeded as exc:
                return _respond(
                    429,
                    {'error': 'rate_limited', 'detail': 'Too many attempts. Try again later.'},
                    **{'Retry-After': str(math.ceil(exc.retry_after))},
                )

        try:
            result = await gate.access(body.token, body.passcode)
        except StoreUnavailable:
            return _respond(503, {
                'error': 'store_unavailable',
                'detail': 'Temporarily unavailable. Try again.',
                'retryable': True,
            })
        except Exception:
            logger.exception('packet_access_failed')
            return _respond(503, {
                'error': 'access_failed',
                'detail': 'Temporarily unavailable. Try again.',
                'retryable': True,
            })

        if not result.granted:
            return _denial(result.outcome)

        return _respond(200, {
            'recipient_name': result.recipient_name,
            'expires_at': result.expires_at.isoformat(),
            'content': result.content.to_dict(),
        })

    return router
