"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vr_art_guard.api.control import router as session_router
from vr_art_guard.api.control import verify_router
from vr_art_guard.app_logging import configure_logging
from vr_art_guard.containers import AppContainer
from vr_art_guard.services.sessions import SessionManager


def create_app(container: AppContainer, *, run_ticker: bool = True) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    async def tick_forever(manager: SessionManager, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await manager.tick()
            except Exception:
                logger.exception("Session tick failed")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        await state_container.delivery_client.negotiate()
        ticker = None
        if run_ticker:
            ticker = asyncio.create_task(
                tick_forever(
                    state_container.session_manager,
                    state_container.settings.tick_interval_seconds,
                )
            )
        yield
        if ticker is not None:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
        manager = state_container.session_manager
        if manager.session is not None and not manager.session.closed:
            await manager.end_session()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(session_router)
    app.include_router(verify_router)

    @app.get("/health")
    async def health() -> dict[str, object]:
        """Simple health check endpoint."""
        return {
            "status": "ok",
            "batch_supported": app.state.container.delivery_client.batch_supported,
        }

    return app
