"""Domain exceptions for share-packet issuance, access and revocation.

Store adapters raise the ``StoreError`` family; the issuer, gate and
revoker translate those into the caller-facing errors below. None of these
exceptions carry a plaintext access token or passcode.
"""

from __future__ import annotations


# ── Store errors ──────────────────────────────────────────────────────


class StoreError(Exception):
    """Base class for failures reported by a packet store."""


class StoreUnavailable(StoreError):
    """Transient store failure. Callers should retry the whole request."""


class TokenCollision(StoreError):
    """The unique index on the access token rejected an insert."""


# ── Issuance ──────────────────────────────────────────────────────────


class IssuanceRejected(ValueError):
    """Issuance input failed validation (blank recipient, blank passcode)."""

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.detail = detail
        super().__init__(f'{field}: {detail}')


class IssuanceFailed(Exception):
    """The packet could not be persisted. Safe to retry."""

    retryable = True


# ── Revocation ────────────────────────────────────────────────────────


class PacketNotFound(Exception):
    """No packet exists with the given id."""

    def __init__(self, packet_id: str) -> None:
        self.packet_id = packet_id
        super().__init__(f'Packet {packet_id} not found')


class Unauthorized(Exception):
    """Caller is not the owner of the packet it tried to act on."""

    def __init__(self, packet_id: str, owner_id: str) -> None:
        self.packet_id = packet_id
        self.owner_id = owner_id
        super().__init__(f'{owner_id} does not own packet {packet_id}')
