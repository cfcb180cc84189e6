"""Access token generation and at-rest digests.

A token is 32 bytes from the OS CSPRNG rendered as unpadded base64url, so it
is always 43 characters from ``[A-Za-z0-9_-]`` and drops straight into a URL
query parameter. Stores only ever persist ``hash_access_token(token)``.

There is no fallback generator: if ``secrets`` cannot read the
OS entropy source the resulting exception propagates and issuance fails.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from typing import Callable

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_BYTES = 32  # 256-bit tokens.
TOKEN_LENGTH = 43  # len(token_urlsafe(32)) with padding stripped.
TOKEN_ENTROPY_BITS = TOKEN_BYTES * 8

_TOKEN_RE = re.compile(r'^[A-Za-z0-9_-]{%d}$' % TOKEN_LENGTH)

TokenGenerator = Callable[[], str]


# ── Token operations ──────────────────────────────────────────────────


def generate_access_token() -> str:
    """Generate a fresh access token.

    Uniqueness is not checked here; the store's unique index on the token
    digest rejects the (astronomically unlikely) duplicate and the issuer
    retries with a new token.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_access_token(token: str) -> str:
    """SHA-256 hex digest of a plaintext token, as persisted by stores."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def is_well_formed_token(token: str | None) -> bool:
    """True if ``token`` has the shape of a generated token.

    Malformed input is denied without a store round-trip.
    """
    return bool(token) and _TOKEN_RE.match(token) is not None
