"""PostgREST client error hierarchy.

Errors carry only the status and PostgREST's message fields, never request
headers or the httpx response, so they are safe to log.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupabaseError(Exception):
    """Base error for a failed PostgREST request."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None

    def __str__(self) -> str:
        bits = [f"SupabaseError(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        return " ".join(bits)

    @property
    def is_transient(self) -> bool:
        """5xx, timeouts and rate limits are worth retrying."""
        return self.status_code >= 500 or self.status_code in (408, 429)


class SupabaseAuthError(SupabaseError):
    """401/403: bad service key or row-level security denial."""


class SupabaseNotFoundError(SupabaseError):
    """404: missing table, view or RPC function."""


class SupabaseConflictError(SupabaseError):
    """409: unique violation."""


class SupabaseTransportError(SupabaseError):
    """The request never produced a response (connect/read failure)."""
