"""Structured logging redaction tests.

Validates:
  - Secret-named fields are replaced before rendering.
  - Token-like runs inside the event message are shortened.
  - The current request id and service name are attached to every entry.
  - Render mode follows LOG_FORMAT, then the environment.
"""
import pytest

from share_packets.observability.logging import (
    SERVICE_NAME,
    _add_request_id,
    _add_service,
    _redact_secrets,
    _wants_json,
    request_id_ctx,
)
from share_packets.sharing.tokens import generate_access_token


class TestRedactSecrets:

    def test_secret_fields(self):
        token = generate_access_token()
        event = _redact_secrets(None, 'info', {
            'event': 'x',
            'token': token,
            'Passcode': '4242',
            'passcode_hash': 'sha256$aa$bb',
            'packet_id': 'p1',
        })
        assert event['token'] == '<redacted>'
        assert event['Passcode'] == '<redacted>'
        assert event['passcode_hash'] == '<redacted>'
        assert event['packet_id'] == 'p1'

    def test_none_left_alone(self):
        event = _redact_secrets(None, 'info', {'event': 'x', 'token': None})
        assert event['token'] is None

    def test_token_in_message(self):
        token = generate_access_token()
        event = _redact_secrets(None, 'info', {'event': f'lookup {token} failed'})
        assert token not in event['event']
        assert event['event'] == f'lookup {token[:8]}... failed'

    @pytest.mark.parametrize('name', [
        'packet_access_granted',
        'packet_store_unavailable',
        'packet_revoke_unauthorized',
        'share_packets_startup',
    ])
    def test_event_names_untouched(self, name):
        assert _redact_secrets(None, 'info', {'event': name})['event'] == name

    def test_longer_runs_untouched(self):
        run = 'x' * 60
        assert _redact_secrets(None, 'info', {'event': run})['event'] == run


class TestRequestId:

    def test_attached_from_context(self):
        reset = request_id_ctx.set('req-abc12345')
        try:
            event = _add_request_id(None, 'info', {'event': 'x'})
        finally:
            request_id_ctx.reset(reset)
        assert event['request_id'] == 'req-abc12345'

    def test_absent_outside_request(self):
        assert 'request_id' not in _add_request_id(None, 'info', {'event': 'x'})

    def test_service_name(self):
        assert _add_service(None, 'info', {'event': 'x'})['service'] == SERVICE_NAME


class TestRenderMode:

    def test_environment_default(self, monkeypatch):
        monkeypatch.delenv('LOG_FORMAT', raising=False)
        assert not _wants_json('local')
        assert _wants_json('production')

    def test_log_format_wins(self, monkeypatch):
        monkeypatch.setenv('LOG_FORMAT', 'json')
        assert _wants_json('local')
        monkeypatch.setenv('LOG_FORMAT', 'console')
        assert not _wants_json('production')
