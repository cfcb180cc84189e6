"""Share-packet FastAPI application factory.

create_app() is the single entry point for building the ASGI application.
It wires middleware (request-ID, metrics, request logging, owner auth
guard, CORS), the owner and public routers, and injects the packet store.

Usage:
    # Local development (in-memory store, HS256 owner tokens)
    from share_packets import create_app, SharePacketSettings
    app = create_app(SharePacketSettings(supabase_jwt_secret="dev-secret"))

    # Non-local (Supabase store built from settings)
    app = create_app(SharePacketSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, store=fake_store, token_verifier=verifier)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .db.packet_store import SupabasePacketStore
from .db.supabase_client import SupabaseClient
from .observability.logging import configure_logging, get_logger
from .observability.metrics import metrics_text
from .observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)
from .rate_limiter import RateLimitConfig, SlidingWindowCounter
from .security.auth_guard import AuthGuardMiddleware
from .security.token_verify import TokenVerifier, create_token_verifier
from .settings import SharePacketSettings
from .sharing.access import create_packet_access_router
from .sharing.audit import (
    LoggingPacketAuditEmitter,
    PacketAuditEmitter,
)
from .sharing.model import Clock, utcnow
from .sharing.routes import create_packet_router
from .sharing.service import SharePacketService
from .sharing.store import InMemoryPacketStore, PacketStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Injected collaborators, stored on ``app.state.deps``."""

    store: PacketStore
    audit_emitter: PacketAuditEmitter
    service: SharePacketService
    limiter: SlidingWindowCounter
    supabase_client: SupabaseClient | None = None


def _build_store(
    settings: SharePacketSettings,
) -> tuple[PacketStore, SupabaseClient | None]:
    if settings.is_local and not settings.supabase_url:
        return InMemoryPacketStore(), None
    client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    return SupabasePacketStore(client), client


def create_app(
    settings: SharePacketSettings | None = None,
    *,
    store: PacketStore | None = None,
    audit_emitter: PacketAuditEmitter | None = None,
    token_verifier: TokenVerifier | None = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """Create a configured share-packet FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        store: Packet store override. When None, local mode without a
            Supabase URL uses the in-memory store; otherwise a Supabase
            store is built from settings.
        audit_emitter: Audit sink override. Defaults to structured logging.
        token_verifier: Owner token verifier override.
        clock: Current-time source shared by issuer, gate and revoker.

    Raises:
        ValueError: Settings validation failed, or no owner token
            verification could be configured.
    """
    if settings is None:
        settings = SharePacketSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Share packet settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    supabase_client: SupabaseClient | None = None
    if store is None:
        store, supabase_client = _build_store(settings)

    if audit_emitter is None:
        audit_emitter = LoggingPacketAuditEmitter()

    if token_verifier is None:
        token_verifier = create_token_verifier(
            supabase_url=settings.supabase_url or None,
            jwt_secret=settings.supabase_jwt_secret or None,
        )

    service = SharePacketService.build(
        store,
        ttl=settings.packet_ttl,
        clock=clock,
        audit=audit_emitter,
    )
    limiter = SlidingWindowCounter(
        RateLimitConfig(
            max_requests=settings.public_access_rate_limit,
            window_seconds=settings.public_access_rate_window_seconds,
            description="Public share-packet access attempts",
        )
    )
    deps = AppDependencies(
        store=store,
        audit_emitter=audit_emitter,
        service=service,
        limiter=limiter,
        supabase_client=supabase_client,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(environment=settings.environment)
        logger.info(
            "share_packets_startup",
            environment=settings.environment,
            store=type(store).__name__,
            packet_ttl_days=settings.packet_ttl_days,
        )
        yield
        if supabase_client is not None:
            await supabase_client.aclose()
        logger.info("share_packets_shutdown")

    app = FastAPI(
        title="Share Packets",
        description="Revocable, time-limited sharing of family records",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (last added runs first) ─────────────────
    # Order of execution: RequestID -> Metrics -> Logging -> AuthGuard -> CORS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    app.add_middleware(AuthGuardMiddleware, token_verifier=token_verifier)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    @app.get("/metrics")
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(
        create_packet_router(service, share_base_url=settings.share_base_url)
    )
    app.include_router(create_packet_access_router(service.gate, limiter=limiter))

    return app


def create_app_from_env() -> FastAPI:
    """Build the app from environment variables (uvicorn factory target)."""
    return create_app(SharePacketSettings.from_env())
