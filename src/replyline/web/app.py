"""FastAPI application factory: mounts the API routes."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from replyline.config import Config


def create_app(config: Config | None = None) -> FastAPI:
    """Build the FastAPI application.

    The gateway, reply adapter and timeout guard live on ``app.state`` for
    the app's lifetime; each request only opens its own database connection.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from replyline.config import load_config
        from replyline.gateway import get_gateway
        from replyline.service import guard_for, reply_adapter_for

        app.state.config = config or load_config()
        app.state.gateway = get_gateway(app.state.config)
        app.state.reply_adapter = reply_adapter_for(app.state.config)
        app.state.guard = guard_for(app.state.config)
        try:
            yield
        finally:
            app.state.guard.shutdown()

    app = FastAPI(title="Replyline API", version="0.1.0", lifespan=lifespan)

    from replyline.web.api import router as api_router
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def _root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def _health():
        return {"status": "ok"}

    return app
