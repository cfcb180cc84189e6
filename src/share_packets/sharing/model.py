"""Share-packet domain model.

A packet pairs an immutable, point-in-time content snapshot with an access
credential and a fixed expiry window. After creation only two fields ever
change, both monotonically: ``revoked`` (False to True, never back) and
``views`` (incremented once per granted access).

This module provides:
  1. ``PacketContent``: frozen, JSON-canonical content snapshot.
  2. ``SharePacket``: the persisted record.
  3. ``PacketStatus``: owner-facing lifecycle label.
  4. ``utcnow``: the default clock.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .errors import IssuanceRejected

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse a store timestamp, assuming UTC when no offset is present."""
    if value is None or value == '':
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _records(name: str, value: Any) -> list[dict[str, Any]]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise IssuanceRejected('content', f'{name} must be a list of records')
    if not all(isinstance(item, Mapping) for item in value):
        raise IssuanceRejected('content', f'{name} entries must be objects')
    return [dict(item) for item in value]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f'{type(value).__name__} is not JSON serializable')


# ── Content snapshot ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PacketContent:
    """Point-in-time copy of the records shared with a recipient.

    The snapshot is held as canonical JSON text, so nothing the caller does
    to its own records after issuance can reach it, and every read hands
    out a fresh copy.
    """

    payload: str

    @classmethod
    def build(
        cls,
        *,
        logs: Sequence[Mapping[str, Any]] = (),
        strategies: Sequence[Mapping[str, Any]] = (),
        summary_message: str = '',
    ) -> PacketContent:
        summary_message = summary_message or ''
        if not isinstance(summary_message, str):
            raise IssuanceRejected('content', 'summary_message must be text')
        document = {
            'logs': _records('logs', logs),
            'strategies': _records('strategies', strategies),
            'summary_message': summary_message,
        }
        return cls(
            payload=json.dumps(
                document,
                default=_json_default,
                ensure_ascii=False,
                separators=(',', ':'),
            ),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PacketContent:
        return cls.build(
            logs=data.get('logs') or (),
            strategies=data.get('strategies') or (),
            summary_message=data.get('summary_message') or '',
        )

    def to_dict(self) -> dict[str, Any]:
        return json.loads(self.payload)

    @property
    def logs(self) -> list[dict[str, Any]]:
        return self.to_dict()['logs']

    @property
    def strategies(self) -> list[dict[str, Any]]:
        return self.to_dict()['strategies']

    @property
    def summary_message(self) -> str:
        return self.to_dict()['summary_message']

    @property
    def is_empty(self) -> bool:
        data = self.to_dict()
        return not (data['logs'] or data['strategies'] or data['summary_message'].strip())


# ── Packet record ─────────────────────────────────────────────────────


class PacketStatus(str, Enum):
    ACTIVE = 'active'
    EXPIRED = 'expired'
    REVOKED = 'revoked'


@dataclass(frozen=True, slots=True)
class SharePacket:
    """Persisted share packet.

    Attributes:
        id: Store-assigned record id. Never used for public access.
        access_token: SHA-256 digest of the plaintext access token.
        owner_id: Issuing family account.
        recipient_name: Free-text label, never used for authorization.
        content: Snapshot captured at issuance.
        generated_at: Issuance time.
        expires_at: Fixed at issuance; never extended.
        revoked: Monotonic revocation flag.
        revoked_at: Time of the first revocation.
        has_passcode: Whether access also needs a passcode.
        passcode_hash: Digest from ``passcode.hash_passcode``; present iff
            ``has_passcode``.
        views: Number of granted accesses.
    """

    id: str
    access_token: str
    owner_id: str
    recipient_name: str
    content: PacketContent
    generated_at: datetime
    expires_at: datetime
    revoked: bool = False
    revoked_at: datetime | None = None
    has_passcode: bool = False
    passcode_hash: str | None = field(default=None, repr=False)
    views: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.expires_at, datetime) or self.expires_at.tzinfo is None:
            raise ValueError('expires_at must be a timezone-aware datetime')
        if self.has_passcode != (self.passcode_hash is not None):
            raise ValueError('passcode_hash must be set iff has_passcode is true')

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def status(self, now: datetime) -> PacketStatus:
        if self.revoked:
            return PacketStatus.REVOKED
        if self.is_expired(now):
            return PacketStatus.EXPIRED
        return PacketStatus.ACTIVE

    # ── Record (de)serialization ──────────────────────────────────

    def to_record(self) -> dict[str, Any]:
        """Serialize for a document store row."""
        return {
            'id': self.id,
            'access_token': self.access_token,
            'owner_id': self.owner_id,
            'recipient_name': self.recipient_name,
            'content': self.content.to_dict(),
            'generated_at': self.generated_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'revoked': self.revoked,
            'revoked_at': self.revoked_at.isoformat() if self.revoked_at else None,
            'has_passcode': self.has_passcode,
            'passcode_hash': self.passcode_hash,
            'views': self.views,
        }

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> SharePacket:
        """Rebuild a packet from a store row.

        Raises:
            KeyError / ValueError: The row is missing required fields or
                violates the passcode invariant.
        """
        content = row['content']
        if isinstance(content, str):
            content = json.loads(content)
        return cls(
            id=str(row['id']),
            access_token=row['access_token'],
            owner_id=row['owner_id'],
            recipient_name=row['recipient_name'],
            content=PacketContent.from_dict(content),
            generated_at=parse_timestamp(row['generated_at']),
            expires_at=parse_timestamp(row['expires_at']),
            revoked=bool(row.get('revoked', False)),
            revoked_at=parse_timestamp(row.get('revoked_at')),
            has_passcode=bool(row.get('has_passcode', False)),
            passcode_hash=row.get('passcode_hash'),
            views=int(row.get('views') or 0),
        )
