"""Owner authentication for the share-packet service."""

from .auth_guard import AuthGuardMiddleware, get_owner_identity
from .token_verify import (
    OwnerIdentity,
    TokenVerificationError,
    TokenVerifier,
    create_token_verifier,
)

__all__ = [
    'AuthGuardMiddleware',
    'OwnerIdentity',
    'TokenVerificationError',
    'TokenVerifier',
    'create_token_verifier',
    'get_owner_identity',
]
