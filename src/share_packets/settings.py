"""Share-packet service configuration.

SharePacketSettings is the single configuration object accepted by
create_app(). It is a plain dataclass (not env-coupled) so tests can inject
config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

MIN_PACKET_TTL_DAYS = 1
MAX_PACKET_TTL_DAYS = 30
DEFAULT_SHARE_BASE_URL = "http://localhost:5173"
DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class SharePacketSettings:
    """Configuration for the share-packet FastAPI application.

    Non-local environments must supply supabase_url and
    supabase_service_role_key.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    """Supabase project URL (e.g. https://xyz.supabase.co)."""

    supabase_service_role_key: str = ""
    """Service-role key for PostgREST calls. Never log this."""

    supabase_jwt_secret: str = ""
    """HS256 secret for owner tokens when no supabase_url is set (local dev)."""

    # ── Packets ────────────────────────────────────────────────────
    packet_ttl_days: int = 7
    """Fixed validity window applied at issuance."""

    share_base_url: str = DEFAULT_SHARE_BASE_URL
    """Origin of the recipient-facing share page."""

    public_access_rate_limit: int = 30
    """Public access attempts allowed per client per window."""

    public_access_rate_window_seconds: float = 60.0

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    @property
    def packet_ttl(self) -> timedelta:
        return timedelta(days=self.packet_ttl_days)

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not MIN_PACKET_TTL_DAYS <= self.packet_ttl_days <= MAX_PACKET_TTL_DAYS:
            errors.append(
                f"packet_ttl_days must be between {MIN_PACKET_TTL_DAYS} "
                f"and {MAX_PACKET_TTL_DAYS}"
            )
        if self.public_access_rate_limit < 1:
            errors.append("public_access_rate_limit must be >= 1")
        if self.public_access_rate_window_seconds <= 0:
            errors.append("public_access_rate_window_seconds must be > 0")
        if not self.share_base_url.startswith(("http://", "https://")):
            errors.append("share_base_url must be an http(s) URL")
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
            if not self.share_base_url.startswith("https://"):
                errors.append(f"{self.environment}: share_base_url must use https")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> SharePacketSettings:
        """Build settings from environment variables.

        Tests should construct SharePacketSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = (
            tuple(o.strip() for o in cors_raw.split(",") if o.strip())
            if cors_raw
            else DEFAULT_CORS_ORIGINS
        )

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            supabase_jwt_secret=env.get("SUPABASE_JWT_SECRET", ""),
            packet_ttl_days=int(env.get("PACKET_TTL_DAYS", "7")),
            share_base_url=env.get("SHARE_BASE_URL", DEFAULT_SHARE_BASE_URL),
            public_access_rate_limit=int(env.get("PUBLIC_ACCESS_RATE_LIMIT", "30")),
            public_access_rate_window_seconds=float(
                env.get("PUBLIC_ACCESS_RATE_WINDOW_SECONDS", "60")
            ),
            cors_origins=cors,
        )
