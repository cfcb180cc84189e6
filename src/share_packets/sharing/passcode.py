"""Passcode digests for passcode-gated packets.

Digest format::

    sha256$<salt hex>$<sha256(salt || trimmed passcode) hex>

Every packet gets its own 16-byte salt. Bare 64-character hex digests
(unsalted SHA-256 of the trimmed passcode, as written by older clients) are
still accepted by ``verify_passcode``.

Blank passcodes are rejected by the issuer, not here.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

SALT_BYTES = 16
SCHEME = 'sha256'
_LEGACY_DIGEST_LENGTH = 64
_HEX = frozenset('0123456789abcdef')


def normalize_passcode(plaintext: str) -> str:
    return plaintext.strip()


def _digest(salt: bytes, plaintext: str) -> str:
    material = salt + normalize_passcode(plaintext).encode('utf-8')
    return hashlib.sha256(material).hexdigest()


def hash_passcode(plaintext: str, *, salt: bytes | None = None) -> str:
    """Return a salted digest for ``plaintext``.

    Args:
        plaintext: The passcode as typed by the owner.
        salt: Override for tests; a fresh random salt is used otherwise.
    """
    if salt is None:
        salt = secrets.token_bytes(SALT_BYTES)
    return f'{SCHEME}${salt.hex()}${_digest(salt, plaintext)}'


def _is_hex(value: str) -> bool:
    return bool(value) and all(c in _HEX for c in value)


def verify_passcode(plaintext: str, digest: str | None) -> bool:
    """Check ``plaintext`` against a stored digest in constant time.

    Unknown or malformed digests never verify.
    """
    if not digest or plaintext is None:
        return False

    if '$' not in digest:
        if len(digest) != _LEGACY_DIGEST_LENGTH or not _is_hex(digest):
            return False
        expected = digest
        actual = _digest(b'', plaintext)
    else:
        parts = digest.split('$')
        if len(parts) != 3 or parts[0] != SCHEME:
            return False
        salt_hex, expected = parts[1], parts[2]
        if len(salt_hex) % 2 or not _is_hex(salt_hex) or not _is_hex(expected):
            return False
        actual = _digest(bytes.fromhex(salt_hex), plaintext)

    return hmac.compare_digest(actual.encode('ascii'), expected.encode('ascii'))


class PasscodeHasher:
    """Injectable wrapper around ``hash_passcode`` / ``verify_passcode``."""

    def hash(self, plaintext: str) -> str:
        return hash_passcode(plaintext)

    def verify(self, plaintext: str, digest: str | None) -> bool:
        return verify_passcode(plaintext, digest)
