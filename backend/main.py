from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.db import dispose_engine
from backend.db_init import init_db
from backend.routes import categories, completions, daily_logs, event_completions, habits

logger = logging.getLogger("backend")

ROUTERS = (
    categories.router,
    habits.router,
    daily_logs.router,
    completions.router,
    event_completions.router,
)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("BACKEND_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = FastAPI(title="Habit Tracker Store", version="0.1.0")
    for router in ROUTERS:
        app.include_router(router)

    @app.on_event("startup")
    async def _create_tables():
        await init_db()

    @app.on_event("shutdown")
    async def _close_pool():
        await dispose_engine()

    @app.exception_handler(Exception)
    async def _internal_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()
