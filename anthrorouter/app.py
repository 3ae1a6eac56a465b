"""FastAPI application factory for the gateway."""

import logging
import socket
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admission import AdmissionCache, KeyPolicy, epoch_millis
from .admission.cache import RATE_LIMIT_HEADERS, Clock
from .api.routes import health, messages_endpoint, not_found_handler
from .config_loader import GatewaySettings
from .core import UpstreamClient

logger = logging.getLogger("anthrorouter")

MESSAGES_PATHS = ("/v1/messages", "/api/v1/messages")


def build_admission_cache(
    settings: GatewaySettings, clock: Clock = epoch_millis
) -> AdmissionCache:
    """Create the process-wide admission cache from settings."""
    admission_cfg = settings.admission
    policy = KeyPolicy(
        allowed_keys=admission_cfg.valid_api_keys,
        dev_key=admission_cfg.dev_key,
    )
    return AdmissionCache(
        policy,
        clock=clock,
        key_ttl_ms=admission_cfg.key_ttl_seconds * 1000,
        rate_limit=admission_cfg.rate_limit,
        rate_window_ms=admission_cfg.rate_window_seconds * 1000,
        sweep_interval_s=admission_cfg.sweep_interval_seconds,
    )


def create_app(
    settings: Optional[GatewaySettings] = None,
    *,
    admission: Optional[AdmissionCache] = None,
    upstream: Optional[UpstreamClient] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the gateway application.

    The admission cache and upstream client are created once here and shared
    by every request through ``app.state``.

    Args:
        settings: Gateway settings; defaults apply when omitted.
        admission: Pre-built admission cache (tests inject one with a fake clock).
        upstream: Pre-built upstream client.
        transport: httpx transport for the default upstream client.

    Returns:
        The configured FastAPI application instance.
    """
    settings = settings or GatewaySettings()

    app = FastAPI(title="AnthroRouter")
    app.state.settings = settings
    app.state.admission = admission or build_admission_cache(settings)
    app.state.upstream = upstream or UpstreamClient(settings.upstream, transport=transport)

    allow_all = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else list(settings.cors_origins),
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=list(RATE_LIMIT_HEADERS),
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        """Start background maintenance and report the bind address."""
        app.state.admission.start_sweeper()
        logger.info("AnthroRouter gateway starting up...")
        logger.info("Configured bind address %s:%s", settings.host, settings.port)
        if settings.host == "0.0.0.0":
            hostname = socket.gethostname()
            logger.info("Reachable on local network at http://%s:%s", hostname, settings.port)
        logger.info("Upstream endpoint: %s", app.state.upstream.url)
        if not settings.upstream.api_key:
            logger.warning(
                "No upstream API key configured; set OPENROUTER_API_KEY or upstream.api_key"
            )
        logger.info("API endpoint: http://%s:%s/v1/messages", settings.host, settings.port)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Stop the admission sweeper."""
        await app.state.admission.stop_sweeper()
        logger.info("AnthroRouter gateway stopped")

    app.get("/health")(health)
    for path in MESSAGES_PATHS:
        app.post(path)(messages_endpoint)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    return app
