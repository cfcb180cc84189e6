"""Owner session token verification.

Owners sign in through Supabase Auth and call the owner endpoints with
``Authorization: Bearer <access_token>``. Only that session JWT is checked
here; share-packet access tokens have their own digest lookup.

Signing keys come from the project's JWKS endpoint (RS256) when a Supabase
URL is configured, otherwise from a static HS256 secret for local runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import jwt
from jwt import PyJWKClient, PyJWKClientError
from starlette.requests import Request

DEFAULT_AUDIENCE = 'authenticated'
JWKS_CACHE_TTL_SECONDS = 300
JWKS_PATH = '/auth/v1/.well-known/jwks.json'
REQUIRED_CLAIMS = ['sub', 'exp', 'aud']

# Checked in order; subclasses before InvalidTokenError.
_DECODE_ERROR_CODES: tuple[tuple[type[jwt.InvalidTokenError], str], ...] = (
    (jwt.ExpiredSignatureError, 'token_expired'),
    (jwt.InvalidAudienceError, 'invalid_audience'),
    (jwt.InvalidTokenError, 'invalid_token'),
)


class TokenVerificationError(Exception):
    """An owner session token was rejected; ``code`` goes back to the client."""

    def __init__(self, code: str, detail: str = '') -> None:
        self.code = code
        self.detail = detail
        super().__init__(code if not detail else f'{code}: {detail}')


@dataclass(frozen=True, slots=True)
class OwnerIdentity:
    """Who is calling an owner endpoint.

    ``owner_id`` is the ``sub`` claim and is the only field packet ownership
    is checked against.
    """

    owner_id: str
    email: str = ''
    claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> OwnerIdentity:
        subject = claims.get('sub')
        if not subject:
            raise TokenVerificationError('missing_sub_claim')
        email = claims.get('email') or ''
        return cls(owner_id=str(subject), email=email.lower(), claims=dict(claims))


class KeyProvider(Protocol):
    def get_signing_key(self, token: str) -> Any: ...


class StaticKeyProvider:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_signing_key(self, token: str) -> str:
        return self._secret


class JWKSKeyProvider:
    """Resolves the key named by the token's ``kid``; the key set is cached."""

    def __init__(self, jwks_url: str, cache_ttl: int = JWKS_CACHE_TTL_SECONDS) -> None:
        self.jwks_url = jwks_url
        self._jwks = PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=cache_ttl)

    def get_signing_key(self, token: str) -> Any:
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
        except PyJWKClientError as exc:
            raise TokenVerificationError('jwks_fetch_error', str(exc)) from exc
        return signing_key.key


class TokenVerifier:
    def __init__(
        self,
        key_provider: KeyProvider,
        *,
        algorithms: list[str],
        audience: str = DEFAULT_AUDIENCE,
    ) -> None:
        self._key_provider = key_provider
        self._algorithms = list(algorithms)
        self._audience = audience

    def _decode(self, token: str) -> dict[str, Any]:
        # Key lookup parses the header too (JWKS reads ``kid``), so a malformed
        # token can fail there as well as in decode.
        try:
            key = self._key_provider.get_signing_key(token)
            return jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                options={'require': REQUIRED_CLAIMS},
            )
        except jwt.InvalidTokenError as exc:
            code = next(c for kind, c in _DECODE_ERROR_CODES if isinstance(exc, kind))
            details = {
                'invalid_audience': f'expected {self._audience}',
                'invalid_token': str(exc),
            }
            raise TokenVerificationError(code, details.get(code, '')) from exc

    def verify(self, token: str) -> OwnerIdentity:
        """Check signature, expiry and audience; return the caller's identity.

        Raises:
            TokenVerificationError: With one of ``empty_token``,
                ``token_expired``, ``invalid_audience``, ``invalid_token``,
                ``missing_sub_claim`` or ``jwks_fetch_error``.
        """
        if not (token or '').strip():
            raise TokenVerificationError('empty_token')
        return OwnerIdentity.from_claims(self._decode(token))


def extract_bearer_token(request: Request) -> str | None:
    scheme, _, credentials = request.headers.get('authorization', '').partition(' ')
    if scheme != 'Bearer':
        return None
    return credentials.strip() or None


def create_token_verifier(
    supabase_url: str | None = None,
    jwt_secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
) -> TokenVerifier:
    """JWKS/RS256 when ``supabase_url`` is set, else HS256 with ``jwt_secret``.

    Raises:
        ValueError: Neither is configured.
    """
    if supabase_url:
        provider: KeyProvider = JWKSKeyProvider(supabase_url.rstrip('/') + JWKS_PATH)
        algorithms = ['RS256']
    elif jwt_secret:
        provider = StaticKeyProvider(jwt_secret)
        algorithms = ['HS256']
    else:
        raise ValueError(
            'owner auth needs supabase_url (JWKS) or a jwt_secret (HS256)'
        )
    return TokenVerifier(provider, algorithms=algorithms, audience=audience)
