"""FastAPI application factory for the pocket websocket gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pocket.config.schema import PocketConfig
    from pocket.providers.base import ModelProvider
    from pocket.tools.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect tool servers and build the loop on startup, close on shutdown."""
    from pocket.cli.app import (
        _build_loop,
        _context_factory,
        _setup_provider,
        _setup_registry,
    )
    from pocket.session.manager import SessionManager

    config: PocketConfig = app.state.config
    registry: ProviderRegistry | None = app.state.registry
    owns_registry = registry is None
    if registry is None:
        registry, _ = await _setup_registry(config)
        app.state.registry = registry
    if not len(registry):
        logger.warning("Gateway started without any connected tool servers")

    provider: ModelProvider = app.state.provider or _setup_provider(config)
    app.state.provider = provider
    app.state.loop = _build_loop(config, provider, registry)
    app.state.sessions = SessionManager(_context_factory(config))

    try:
        yield
    finally:
        if owns_registry:
            await registry.close()


def create_app(
    config: PocketConfig | None = None,
    *,
    registry: ProviderRegistry | None = None,
    provider: ModelProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``registry`` and ``provider`` replace the ones built from config;
    an injected registry is left open on shutdown.
    """
    from pocket import __version__
    from pocket.config.loader import load_config

    if config is None:
        config = load_config()

    app = FastAPI(
        title="pocket",
        description="Conversational wallet agent gateway",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.provider = provider

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.gateway.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from pocket.api.health import router as health_router
    from pocket.api.routes.ws import router as ws_router

    app.include_router(health_router)
    app.include_router(ws_router)

    return app
