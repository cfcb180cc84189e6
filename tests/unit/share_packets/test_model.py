"""Share-packet model tests.

Validates:
  - PacketContent is a frozen, canonical JSON snapshot.
  - Content records must be lists of objects.
  - SharePacket enforces tz-aware expiry and the passcode invariant.
  - Expiry boundary is inclusive (now == expires_at is expired).
  - Records serialize and parse back, including 'Z' timestamps.
"""
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from share_packets.sharing.errors import IssuanceRejected
from share_packets.sharing.model import (
    PacketContent,
    PacketStatus,
    SharePacket,
    parse_timestamp,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────


def _packet(**overrides) -> SharePacket:
    fields = dict(
        id='p1',
        access_token='d' * 64,
        owner_id='fam_1',
        recipient_name='Ms. Johnson',
        content=PacketContent.build(summary_message='hello'),
        generated_at=NOW,
        expires_at=NOW + timedelta(days=7),
    )
    fields.update(overrides)
    return SharePacket(**fields)


# =====================================================================
# PacketContent
# =====================================================================


class TestPacketContent:

    def test_snapshot_is_detached_from_source(self):
        logs = [{'id': 'log_1', 'behavior': 'Hit'}]
        content = PacketContent.build(logs=logs)
        logs[0]['behavior'] = 'Changed'
        logs.append({'id': 'log_2'})
        assert content.logs == [{'id': 'log_1', 'behavior': 'Hit'}]

    def test_reads_return_fresh_copies(self):
        content = PacketContent.build(logs=[{'id': 'log_1'}])
        content.logs.append({'id': 'x'})
        content.to_dict()['logs'].clear()
        assert content.logs == [{'id': 'log_1'}]

    def test_frozen(self):
        content = PacketContent.build()
        with pytest.raises(FrozenInstanceError):
            content.payload = '{}'

    def test_datetimes_serialize_as_iso(self):
        content = PacketContent.build(logs=[{'timestamp': NOW}])
        assert content.logs[0]['timestamp'] == NOW.isoformat()

    def test_unserializable_value_raises(self):
        with pytest.raises(TypeError):
            PacketContent.build(logs=[{'x': object()}])

    def test_is_empty(self):
        assert PacketContent.build().is_empty
        assert PacketContent.build(summary_message='   ').is_empty
        assert not PacketContent.build(summary_message='hi').is_empty
        assert not PacketContent.build(strategies=[{'id': 's'}]).is_empty

    def test_from_dict_defaults(self):
        content = PacketContent.from_dict({'logs': None})
        assert content.to_dict() == {'logs': [], 'strategies': [], 'summary_message': ''}

    def test_equal_inputs_produce_identical_payloads(self):
        a = PacketContent.build(logs=[{'a': 1}], summary_message='m')
        b = PacketContent.from_dict(a.to_dict())
        assert a.payload == b.payload

    @pytest.mark.parametrize('data', [
        {'logs': 'abc'},
        {'logs': {'id': 'log_1'}},
        {'strategies': ['active']},
        {'logs': (1, 2)},
        {'summary_message': ['hi']},
    ])
    def test_rejects_malformed_records(self, data):
        with pytest.raises(IssuanceRejected) as exc:
            PacketContent.from_dict(data)
        assert exc.value.field == 'content'


# =====================================================================
# SharePacket
# =====================================================================


class TestSharePacket:

    def test_naive_expiry_rejected(self):
        with pytest.raises(ValueError):
            _packet(expires_at=datetime(2026, 3, 9, 9, 0))

    def test_passcode_hash_requires_flag(self):
        with pytest.raises(ValueError):
            _packet(passcode_hash='sha256$00$00')
        with pytest.raises(ValueError):
            _packet(has_passcode=True)

    def test_passcode_hash_not_in_repr(self):
        packet = _packet(has_passcode=True, passcode_hash='sha256$aa$bb')
        assert 'sha256$aa$bb' not in repr(packet)

    def test_expiry_boundary(self):
        packet = _packet()
        assert not packet.is_expired(packet.expires_at - timedelta(microseconds=1))
        assert packet.is_expired(packet.expires_at)

    def test_status(self):
        packet = _packet()
        assert packet.status(NOW) is PacketStatus.ACTIVE
        assert packet.status(NOW + timedelta(days=8)) is PacketStatus.EXPIRED
        revoked = _packet(revoked=True, revoked_at=NOW)
        assert revoked.status(NOW + timedelta(days=8)) is PacketStatus.REVOKED


class TestRecordSerialization:

    def test_round_trip(self):
        packet = _packet(views=3, revoked=True, revoked_at=NOW + timedelta(hours=1))
        assert SharePacket.from_record(packet.to_record()) == packet

    def test_from_record_accepts_z_suffix_and_string_content(self):
        row = {
            'id': 42,
            'access_token': 'd' * 64,
            'owner_id': 'fam_1',
            'recipient_name': 'Coach',
            'content': '{"logs": [], "strategies": [], "summary_message": "hi"}',
            'generated_at': '2026-03-02T09:00:00Z',
            'expires_at': '2026-03-09T09:00:00Z',
        }
        packet = SharePacket.from_record(row)
        assert packet.id == '42'
        assert packet.expires_at == NOW + timedelta(days=7)
        assert packet.content.summary_message == 'hi'
        assert packet.views == 0
        assert not packet.revoked

    def test_from_record_missing_field(self):
        with pytest.raises(KeyError):
            SharePacket.from_record({'id': 'p1'})


class TestParseTimestamp:

    def test_naive_assumed_utc(self):
        assert parse_timestamp('2026-03-02T09:00:00') == NOW

    def test_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp('') is None
