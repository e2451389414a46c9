"""FastAPI application for the tm-agent reply bot."""

from __future__ import annotations

# Load .env BEFORE any other app imports so settings see it
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI

from tmagent.config import Settings, get_settings
from tmagent.context import AppContext, build_app_context
from tmagent.routers import health_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    build_context: Callable[[Settings], Awaitable[AppContext]] = build_app_context,
) -> FastAPI:
    settings = settings or get_settings()

    # ---------- Lifespan ----------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting tm-agent on port %s", settings.port)
        context = await build_context(settings)
        await context.start()
        app.state.context = context

        yield

        try:
            await context.close()
        finally:
            app.state.context = None
        logger.info("tm-agent shutting down")

    # ---------- App ----------

    app = FastAPI(title="tm-agent", version="1.0.0", lifespan=lifespan)
    app.state.context = None
    app.include_router(health_router)
    return app


app = create_app()


# ---------- Runner ----------

if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("tmagent.main:app", host=_settings.host, port=_settings.port, reload=False)
