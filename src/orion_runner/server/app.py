"""FastAPI application factory for the phase runner dashboard backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .. import __version__
from ..config import RunnerSettings, load_settings
from ..runtime.api.router import create_pm_agent_router
from ..runtime.events.broadcaster import ProgressBroadcaster
from ..runtime.execution.coordinator import ExecutionCoordinator
from ..runtime.llm.provider import CompletionProvider
from ..runtime.storage.container import OrionContainer


def create_app(
    data_dir: Optional[Path] = None,
    enable_cors: bool = True,
    *,
    settings: Optional[RunnerSettings] = None,
    provider: Optional[CompletionProvider] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        data_dir: Directory holding the `.orion` state folder (default: cwd).
        enable_cors: Whether to enable CORS.
        settings: Pre-resolved settings; loaded from ``data_dir`` when omitted.
        provider: Completion provider override, mainly for tests.

    Returns:
        Configured FastAPI app.
    """
    data_dir = (data_dir or Path.cwd()).resolve()
    container = OrionContainer(data_dir)
    settings = settings or load_settings(data_dir)
    broadcaster = ProgressBroadcaster()
    coordinator = ExecutionCoordinator(container, broadcaster, settings, provider=provider)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("Phase runner serving {}", container.state_root)
        try:
            yield
        finally:
            coordinator.shutdown(timeout=5.0)

    app = FastAPI(
        title="Orion Phase Runner",
        description="Phase execution engine for agent-driven project backlogs",
        version=__version__,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.container = container
    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.coordinator = coordinator

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(create_pm_agent_router(container, coordinator, broadcaster))
    return app
