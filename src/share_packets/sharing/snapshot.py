"""Default content selection and share-URL construction.

The issuer accepts any ``PacketContent``; which records go into a packet is
the caller's decision. ``build_snapshot`` is the selection the owner UI
uses by default: the most recent behaviour logs and the strategies that are
currently active.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence
from urllib.parse import urlencode

from .model import PacketContent, parse_timestamp

DEFAULT_MAX_LOGS = 5
ACTIVE_STRATEGY_STATUS = 'active'
SHARE_PATH = '/share'
SHARE_QUERY_PARAM = 'code'


def _log_sort_key(log: Mapping[str, Any]) -> float:
    raw = log.get('timestamp') or log.get('created_at')
    try:
        parsed = parse_timestamp(raw)
    except (TypeError, ValueError):
        parsed = None
    return parsed.timestamp() if parsed else float('-inf')


def build_snapshot(
    logs: Sequence[Mapping[str, Any]],
    strategies: Sequence[Mapping[str, Any]],
    summary_message: str = '',
    *,
    max_logs: int = DEFAULT_MAX_LOGS,
) -> PacketContent:
    """Select records for a packet and freeze them.

    Args:
        logs: Behaviour log entries, any order. Entries without a parseable
            ``timestamp``/``created_at`` sort last.
        strategies: Strategy records; only ``status == 'active'`` are kept.
        summary_message: Free-text note from the owner to the recipient.
        max_logs: How many of the newest logs to include.
    """
    if max_logs < 0:
        raise ValueError('max_logs must be >= 0')
    newest = sorted(logs, key=_log_sort_key, reverse=True)[:max_logs]
    active = [s for s in strategies if s.get('status') == ACTIVE_STRATEGY_STATUS]
    return PacketContent.build(
        logs=newest,
        strategies=active,
        summary_message=summary_message,
    )


def build_share_url(base_url: str, token: str) -> str:
    """Embed ``token`` in a shareable link, e.g. ``https://app/share?code=...``."""
    return f'{base_url.rstrip("/")}{SHARE_PATH}?{urlencode({SHARE_QUERY_PARAM: token})}'
