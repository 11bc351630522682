"""FastAPI application entrypoint for the quoting service."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import router as api_router
from .api.deps import get_db
from .constants import APP_NAME
from .database import init_db
from .errors import QuotingError

logger = logging.getLogger(__name__)

init_db()


def create_application() -> FastAPI:
    app = FastAPI(title=f"{APP_NAME} API", version="1.0.0")
    app.include_router(api_router)

    @app.exception_handler(QuotingError)
    async def quoting_error_handler(request: Request, exc: QuotingError) -> JSONResponse:
        logger.info("%s %s failed with %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.get("/health", tags=["health"], summary="Service healthcheck")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok", "message": f"{APP_NAME} API is running"}

    return app


app = create_application()

__all__ = ["app", "create_application", "get_db"]
