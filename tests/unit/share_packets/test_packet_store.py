"""Supabase-backed packet store tests using httpx.MockTransport.

Validates:
  - Inserts send the token digest, never the plaintext, and no id.
  - Unique violations on the token become TokenCollision.
  - Token lookups filter on the digest.
  - Revocation only updates unrevoked rows and falls back to a read.
  - View increments go through the database function.
  - Transient failures become StoreUnavailable; others StoreError.
  - Ids that are not uuids read as missing packets.
"""
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from share_packets.db.packet_store import SupabasePacketStore
from share_packets.db.supabase_client import SupabaseClient
from share_packets.sharing.errors import (
    PacketNotFound,
    StoreError,
    StoreUnavailable,
    TokenCollision,
)
from share_packets.sharing.model import PacketContent, SharePacket
from share_packets.sharing.revocation import PacketRevoker
from share_packets.sharing.tokens import generate_access_token, hash_access_token

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────


def _store(handler) -> SupabasePacketStore:
    client = SupabaseClient(
        supabase_url='https://xyz.supabase.co',
        service_role_key='service-key',
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return SupabasePacketStore(client)


def _packet(token: str) -> SharePacket:
    return SharePacket(
        id='',
        access_token=hash_access_token(token),
        owner_id='fam_1',
        recipient_name='Ms. Johnson',
        content=PacketContent.build(summary_message='hi'),
        generated_at=NOW,
        expires_at=NOW + timedelta(days=7),
    )


def _row(packet_id: str = 'p1', **overrides) -> dict:
    row = _packet(generate_access_token()).to_record()
    row['id'] = packet_id
    row.update(overrides)
    return row


# =====================================================================
# create
# =====================================================================


class TestCreate:

    @pytest.mark.asyncio
    async def test_sends_digest_only(self):
        token = generate_access_token()
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(json.loads(request.content))
            return httpx.Response(201, json=[{**sent, 'id': 'p-new'}])

        packet_id = await _store(handler).create(_packet(token))
        assert packet_id == 'p-new'
        assert 'id' not in sent
        assert sent['access_token'] == hash_access_token(token)
        assert token not in json.dumps(sent)

    @pytest.mark.asyncio
    async def test_unique_violation_is_collision(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={
                'code': '23505',
                'message': 'duplicate key value violates unique constraint '
                           '"share_packets_access_token_key"',
            })

        with pytest.raises(TokenCollision):
            await _store(handler).create(_packet(generate_access_token()))

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        store = _store(lambda request: httpx.Response(503, json={'message': 'busy'}))
        with pytest.raises(StoreUnavailable):
            await store.create(_packet(generate_access_token()))

    @pytest.mark.asyncio
    async def test_missing_id_in_response(self):
        store = _store(lambda request: httpx.Response(201, json=[]))
        with pytest.raises(StoreError):
            await store.create(_packet(generate_access_token()))


# =====================================================================
# Reads
# =====================================================================


class TestReads:

    @pytest.mark.asyncio
    async def test_get_by_token_filters_on_digest(self):
        token = generate_access_token()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['params'] = dict(request.url.params)
            return httpx.Response(200, json=[_row()])

        packet = await _store(handler).get_by_token(token)
        assert packet.id == 'p1'
        assert seen['params']['access_token'] == f'eq.{hash_access_token(token)}'
        assert token not in str(seen['params'])

    @pytest.mark.asyncio
    async def test_get_by_token_missing(self):
        store = _store(lambda request: httpx.Response(200, json=[]))
        assert await store.get_by_token(generate_access_token()) is None

    @pytest.mark.asyncio
    async def test_transport_failure_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout('slow', request=request)

        with pytest.raises(StoreUnavailable):
            await _store(handler).get_by_token(generate_access_token())

    @pytest.mark.asyncio
    async def test_auth_failure_is_store_error(self):
        store = _store(lambda request: httpx.Response(401, json={'message': 'bad key'}))
        with pytest.raises(StoreError) as exc:
            await store.get_by_id('p1')
        assert not isinstance(exc.value, StoreUnavailable)

    @pytest.mark.asyncio
    async def test_malformed_row(self):
        store = _store(lambda request: httpx.Response(200, json=[{'id': 'p1'}]))
        with pytest.raises(StoreError):
            await store.get_by_id('p1')

    @pytest.mark.asyncio
    async def test_list_for_owner_order(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['params'] = dict(request.url.params)
            return httpx.Response(200, json=[_row('p2'), _row('p1')])

        packets = await _store(handler).list_for_owner('fam_1')
        assert [p.id for p in packets] == ['p2', 'p1']
        assert seen['params']['owner_id'] == 'eq.fam_1'
        assert seen['params']['order'] == 'generated_at.desc'


# =====================================================================
# Writes after creation
# =====================================================================


class TestMutations:

    @pytest.mark.asyncio
    async def test_set_revoked_updates_unrevoked_only(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['method'] = request.method
            seen['params'] = dict(request.url.params)
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json=[
                _row(revoked=True, revoked_at=NOW.isoformat()),
            ])

        packet = await _store(handler).set_revoked('p1', revoked_at=NOW)
        assert packet.revoked
        assert packet.revoked_at == NOW
        assert seen['method'] == 'PATCH'
        assert seen['params']['id'] == 'eq.p1'
        assert seen['params']['revoked'] == 'is.false'
        assert seen['body'] == {'revoked': True, 'revoked_at': NOW.isoformat()}

    @pytest.mark.asyncio
    async def test_set_revoked_already_revoked_reads_current(self):
        first = NOW - timedelta(days=1)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == 'PATCH':
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[
                _row(revoked=True, revoked_at=first.isoformat()),
            ])

        packet = await _store(handler).set_revoked('p1', revoked_at=NOW)
        assert packet.revoked_at == first

    @pytest.mark.asyncio
    async def test_increment_views(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith('/rpc/increment_packet_views')
            return httpx.Response(200, json=7)

        assert await _store(handler).increment_views('p1') == 7

    @pytest.mark.asyncio
    async def test_increment_views_missing_packet(self):
        store = _store(lambda request: httpx.Response(200, json=None))
        assert await store.increment_views('p1') is None

    @pytest.mark.asyncio
    async def test_increment_views_failure(self):
        store = _store(lambda request: httpx.Response(500, json={'message': 'boom'}))
        with pytest.raises(StoreUnavailable):
            await store.increment_views('p1')


# =====================================================================
# Ids that are not uuids
# =====================================================================


def _invalid_uuid(request: httpx.Request) -> httpx.Response:
    return httpx.Response(400, json={
        'code': '22P02',
        'message': 'invalid input syntax for type uuid: "abc"',
    })


class TestMalformedIds:

    @pytest.mark.asyncio
    async def test_get_by_id(self):
        assert await _store(_invalid_uuid).get_by_id('abc') is None

    @pytest.mark.asyncio
    async def test_set_revoked(self):
        assert await _store(_invalid_uuid).set_revoked('abc', revoked_at=NOW) is None

    @pytest.mark.asyncio
    async def test_increment_views(self):
        assert await _store(_invalid_uuid).increment_views('abc') is None

    @pytest.mark.asyncio
    async def test_revoke_reports_not_found(self):
        revoker = PacketRevoker(_store(_invalid_uuid), clock=lambda: NOW)
        with pytest.raises(PacketNotFound):
            await revoker.revoke('abc', 'fam_1')

    @pytest.mark.asyncio
    async def test_other_bad_requests_still_fail(self):
        store = _store(lambda request: httpx.Response(400, json={'code': 'PGRST100'}))
        with pytest.raises(StoreError):
            await store.get_by_id('abc')
