"""Hosted document-store adapters (Supabase / PostgREST)."""

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    SupabaseTransportError,
)
from .packet_store import SupabasePacketStore
from .supabase_client import SupabaseClient

__all__ = [
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabasePacketStore",
    "SupabaseTransportError",
]
