"""Revocable, time-limited share packets."""

from .access import AccessPacketRequest, create_packet_access_router
from .audit import (
    InMemoryPacketAuditEmitter,
    LoggingPacketAuditEmitter,
    PacketAuditEmitter,
    PacketAuditEvent,
    redact_string,
    redact_token,
)
from .errors import (
    IssuanceFailed,
    IssuanceRejected,
    PacketNotFound,
    StoreError,
    StoreUnavailable,
    TokenCollision,
    Unauthorized,
)
from .gate import AccessOutcome, AccessResult, PacketAccessGate, evaluate_packet
from .issuer import DEFAULT_TTL, IssuedPacket, PacketIssuer
from .model import PacketContent, PacketStatus, SharePacket, utcnow
from .passcode import PasscodeHasher, hash_passcode, verify_passcode
from .revocation import PacketRevoker, RevocationResult
from .routes import CreatePacketRequest, create_packet_router
from .service import SharePacketService
from .snapshot import build_share_url, build_snapshot
from .store import InMemoryPacketStore, PacketStore
from .tokens import generate_access_token, hash_access_token, is_well_formed_token

__all__ = [
    'AccessOutcome',
    'AccessPacketRequest',
    'AccessResult',
    'CreatePacketRequest',
    'DEFAULT_TTL',
    'InMemoryPacketAuditEmitter',
    'InMemoryPacketStore',
    'IssuanceFailed',
    'IssuanceRejected',
    'IssuedPacket',
    'LoggingPacketAuditEmitter',
    'PacketAccessGate',
    'PacketAuditEmitter',
    'PacketAuditEvent',
    'PacketContent',
    'PacketIssuer',
    'PacketNotFound',
    'PacketRevoker',
    'PacketStatus',
    'PacketStore',
    'PasscodeHasher',
    'RevocationResult',
    'SharePacket',
    'SharePacketService',
    'StoreError',
    'StoreUnavailable',
    'TokenCollision',
    'Unauthorized',
    'build_share_url',
    'build_snapshot',
    'create_packet_access_router',
    'create_packet_router',
    'evaluate_packet',
    'generate_access_token',
    'hash_access_token',
    'hash_passcode',
    'is_well_formed_token',
    'redact_string',
    'redact_token',
    'utcnow',
    'verify_passcode',
]
