"""Pytest configuration for share_packets tests."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from share_packets.sharing.audit import InMemoryPacketAuditEmitter
from share_packets.sharing.service import SharePacketService
from share_packets.sharing.store import InMemoryPacketStore

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryPacketStore()


@pytest.fixture
def audit():
    return InMemoryPacketAuditEmitter()


@pytest.fixture
def service(store, clock, audit):
    return SharePacketService.build(store, clock=clock, audit=audit)


@pytest.fixture
def sample_content():
    return {
        'logs': [
            {
                'id': 'log_1',
                'timestamp': '2026-03-01T15:30:00+00:00',
                'antecedent': 'Transition from recess',
                'behavior': 'Refused to enter classroom',
                'consequence': 'Given a quiet corner',
                'intensity': 3,
            },
        ],
        'strategies': [
            {'id': 'str_1', 'title': 'Visual schedule', 'status': 'active'},
        ],
        'summary_message': 'Here is what has been working at home.',
    }
