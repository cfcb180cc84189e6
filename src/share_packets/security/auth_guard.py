"""Owner authentication for the packet management routes.

``AuthGuardMiddleware`` verifies the owner Bearer token on every
non-exempt request and stores the result on
``request.state.owner_identity``; route handlers read it back through the
``get_owner_identity`` dependency. Recipients never hold accounts, so the
public access endpoint sits under an exempt prefix.
"""

from __future__ import annotations

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from share_packets.observability.logging import get_logger

from .token_verify import (
    OwnerIdentity,
    TokenVerificationError,
    TokenVerifier,
    extract_bearer_token,
)

logger = get_logger(__name__)

DEFAULT_EXEMPT_PREFIXES: tuple[str, ...] = (
    '/api/v1/public/',
    '/health',
    '/metrics',
    '/docs',
    '/openapi.json',
)

CHALLENGE = {'WWW-Authenticate': 'Bearer'}


def unauthorized_body(code: str = 'no_credentials', detail: str = 'Authentication required') -> dict:
    return {'error': 'unauthorized', 'code': code, 'detail': detail}


class AuthGuardMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        token_verifier: TokenVerifier,
        exempt_prefixes: tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES,
    ) -> None:
        super().__init__(app)
        self._verifier = token_verifier
        self._exempt_prefixes = exempt_prefixes

    def requires_auth(self, request: Request) -> bool:
        if request.method == 'OPTIONS':
            return False
        return not request.url.path.startswith(self._exempt_prefixes)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        request.state.owner_identity = None
        if not self.requires_auth(request):
            return await call_next(request)

        token = extract_bearer_token(request)
        try:
            if token is None:
                raise TokenVerificationError('no_credentials', 'Authentication required')
            request.state.owner_identity = self._verifier.verify(token)
        except TokenVerificationError as exc:
            logger.info('owner_auth_rejected', code=exc.code, path=request.url.path)
            return JSONResponse(
                status_code=401,
                content=unauthorized_body(exc.code, exc.detail),
                headers=CHALLENGE,
            )
        return await call_next(request)


def get_owner_identity(request: Request) -> OwnerIdentity:
    """Dependency for owner routes; 401 when the guard stored no identity."""
    identity = getattr(request.state, 'owner_identity', None)
    if identity is None:
        raise HTTPException(status_code=401, detail=unauthorized_body(), headers=CHALLENGE)
    return identity
