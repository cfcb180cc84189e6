"""Application factory tests.

Validates:
  - create_app wires owner auth, owner routes and the public endpoint.
  - Owner routes require a valid Bearer JWT; the public endpoint does not.
  - End-to-end issue, access, revoke, deny through the real middleware stack.
  - /health and /metrics are unauthenticated.
  - Invalid settings and missing owner-auth config fail fast.
  - Audit events go to the structured log unless a sink is injected.
"""
import time

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from share_packets import SharePacketSettings, create_app
from share_packets.observability.middleware import normalize_path
from share_packets.sharing.audit import LoggingPacketAuditEmitter
from share_packets.sharing.store import InMemoryPacketStore

SECRET = 'test-jwt-secret-with-enough-length-for-hs256'


# ── Helpers ──────────────────────────────────────────────────────────


def _owner_token(sub: str = 'fam_1', **overrides) -> str:
    claims = {
        'sub': sub,
        'email': 'Parent@Example.com',
        'aud': 'authenticated',
        'exp': int(time.time()) + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm='HS256')


def _auth(sub: str = 'fam_1') -> dict:
    return {'Authorization': f'Bearer {_owner_token(sub)}'}


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url='http://test')


@pytest.fixture
def settings():
    return SharePacketSettings(
        supabase_jwt_secret=SECRET,
        share_base_url='https://app.example.com',
    )


@pytest.fixture
def app(settings, store, clock, audit):
    return create_app(settings, store=store, audit_emitter=audit, clock=clock)


# =====================================================================
# Wiring
# =====================================================================


class TestCreateApp:

    def test_default_local_store(self, settings):
        app = create_app(settings)
        assert isinstance(app.state.deps.store, InMemoryPacketStore)
        assert app.state.deps.supabase_client is None
        assert isinstance(app.state.deps.audit_emitter, LoggingPacketAuditEmitter)

    def test_invalid_settings(self):
        with pytest.raises(ValueError, match='validation failed'):
            create_app(SharePacketSettings(supabase_jwt_secret=SECRET, packet_ttl_days=0))

    def test_production_requires_supabase(self):
        with pytest.raises(ValueError):
            create_app(SharePacketSettings(environment='production'))

    def test_owner_auth_required(self):
        with pytest.raises(ValueError):
            create_app(SharePacketSettings())

    @pytest.mark.asyncio
    async def test_health_and_metrics_are_public(self, app):
        async with _client(app) as client:
            health = await client.get('/health')
            metrics = await client.get('/metrics')
        assert health.status_code == 200
        assert health.json()['status'] == 'ok'
        assert metrics.status_code == 200
        assert 'share_packets_http_requests_total' in metrics.text

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, app):
        async with _client(app) as client:
            resp = await client.get('/health', headers={'X-Request-ID': 'req-12345678'})
        assert resp.headers['x-request-id'] == 'req-12345678'

    @pytest.mark.asyncio
    async def test_malformed_request_id_replaced(self, app):
        async with _client(app) as client:
            resp = await client.get('/health', headers={'X-Request-ID': 'bad id!'})
        assert resp.headers['x-request-id'] != 'bad id!'
        assert len(resp.headers['x-request-id']) == 32

    def test_packet_ids_collapsed_in_metric_paths(self):
        assert normalize_path('/api/v1/packets/abc-123') == '/api/v1/packets/{packet_id}'
        assert normalize_path('/api/v1/packets') == '/api/v1/packets'


# =====================================================================
# Owner auth
# =====================================================================


class TestOwnerAuth:

    @pytest.mark.asyncio
    async def test_missing_token(self, app):
        async with _client(app) as client:
            resp = await client.get('/api/v1/packets')
        assert resp.status_code == 401
        assert resp.json()['code'] == 'no_credentials'

    @pytest.mark.asyncio
    async def test_wrong_secret(self, app):
        bad = jwt.encode(
            {'sub': 'fam_1', 'aud': 'authenticated', 'exp': int(time.time()) + 60},
            'another-secret-that-is-long-enough-for-hs256',
            algorithm='HS256',
        )
        async with _client(app) as client:
            resp = await client.get(
                '/api/v1/packets', headers={'Authorization': f'Bearer {bad}'},
            )
        assert resp.status_code == 401
        assert resp.json()['code'] == 'invalid_token'

    @pytest.mark.asyncio
    async def test_expired_token(self, app):
        expired = _owner_token(exp=int(time.time()) - 60)
        async with _client(app) as client:
            resp = await client.get(
                '/api/v1/packets', headers={'Authorization': f'Bearer {expired}'},
            )
        assert resp.status_code == 401
        assert resp.json()['code'] == 'token_expired'

    @pytest.mark.asyncio
    async def test_wrong_audience(self, app):
        token = _owner_token(aud='anon')
        async with _client(app) as client:
            resp = await client.get(
                '/api/v1/packets', headers={'Authorization': f'Bearer {token}'},
            )
        assert resp.status_code == 401
        assert resp.json()['code'] == 'invalid_audience'


# =====================================================================
# End to end
# =====================================================================


class TestShareFlow:

    @pytest.mark.asyncio
    async def test_issue_access_revoke(self, app, audit):
        body = {
            'recipient_name': 'Ms. Johnson',
            'content': {'summary_message': 'Quiet corner works best.'},
            'passcode': '4242',
        }
        async with _client(app) as client:
            created = await client.post('/api/v1/packets', json=body, headers=_auth())
            assert created.status_code == 201
            data = created.json()
            token = data['access_token']
            assert data['share_url'] == f'https://app.example.com/share?code={token}'

            url = '/api/v1/public/packets/access'
            locked = await client.post(url, json={'token': token})
            assert locked.status_code == 401

            opened = await client.post(url, json={'token': token, 'passcode': '4242'})
            assert opened.status_code == 200
            assert opened.json()['content']['summary_message'] == 'Quiet corner works best.'

            stolen = await client.delete(
                f'/api/v1/packets/{data["packet_id"]}', headers=_auth('fam_2'),
            )
            assert stolen.status_code == 403

            revoked = await client.delete(
                f'/api/v1/packets/{data["packet_id"]}', headers=_auth(),
            )
            assert revoked.status_code == 200

            denied = await client.post(url, json={'token': token, 'passcode': '4242'})
            assert denied.status_code == 404

            listing = await client.get('/api/v1/packets', headers=_auth())
            packets = listing.json()['packets']
            assert packets[0]['status'] == 'revoked'
            assert packets[0]['views'] == 1

        event_types = [e.event_type for e in audit.events]
        assert event_types.count('packet.issued') == 1
        assert event_types.count('packet.accessed') == 1
        assert event_types.count('packet.revoked') == 1
