import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import aiohttp
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import config
from routes.session_route import router as session_router
from routes.track_route import router as track_router
from services.geo_resolver import GeoResolver
from services.notifier import WebhookNotifier
from services.session_registry import VisitRegistry
from utils.session_sweeper import SessionSweeper

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    registry: Optional[VisitRegistry] = None,
    geo_resolver: Optional[GeoResolver] = None,
    notifier: Optional[WebhookNotifier] = None,
    start_sweeper: bool = True,
    landing_url: str = config.LANDING_URL,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Collaborators that are not passed in are built during startup from `config`.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the in-memory session registry
          - a shared aiohttp client for geo lookups and webhooks
          - the periodic expiry sweeper
        and attach them to `app.state`.
        """
        configure_logging()

        http_session: Optional[aiohttp.ClientSession] = None
        if geo_resolver is None or notifier is None:
            http_session = aiohttp.ClientSession()

        app.state.registry = registry if registry is not None else VisitRegistry()
        app.state.geo_resolver = geo_resolver or GeoResolver(http_session)
        app.state.notifier = notifier or WebhookNotifier(http_session)
        app.state.landing_url = landing_url

        sweeper = SessionSweeper(app.state.registry, retention_seconds=config.SESSION_RETENTION_SECONDS)
        app.state.sweeper = sweeper
        app.state.sweeper_task = None
        if start_sweeper:
            app.state.sweeper_task = asyncio.create_task(
                sweeper.run_periodic_cleanup(config.SWEEP_INTERVAL_SECONDS)
            )

        LOGGER.info("%s started; active sessions: %d", config.SERVICE_NAME, app.state.registry.size())
        try:
            yield
        finally:
            task = app.state.sweeper_task
            if task is not None:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            await app.state.notifier.aclose()
            if http_session is not None:
                await http_session.close()
            if registry is None:
                app.state.registry.clear()

    app = FastAPI(title=config.SERVICE_NAME, version=config.SERVICE_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def status(request: Request):
        """
        Describe the service and list its endpoints.
        """
        return {
            "status": f"{config.SERVICE_NAME} Active",
            "version": config.SERVICE_VERSION,
            "sessions": request.app.state.registry.size(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoints": {
                "register": "POST /api/register",
                "track": "GET /track/{session_id}",
                "enrich": "POST /api/sessions/{session_id}/enrich",
                "stats": "GET /api/sessions/{session_id}",
                "admin": "GET /api/admin/sessions",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports registry size and sweeper state.
        """
        task = getattr(request.app.state, "sweeper_task", None)
        return {
            "ok": True,
            "sessions": request.app.state.registry.size(),
            "sweeper_running": task is not None and not task.done(),
        }

    # Register application routers
    app.include_router(session_router)
    app.include_router(track_router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
