# src/custom_api_auth/main.py
"""Main entry point for the auth token service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from custom_api_auth import __version__
from custom_api_auth.api.registry import RouteRegistry, build_default_registry
from custom_api_auth.api.v1.dependencies import TokenRejectedError
from custom_api_auth.core.logging import configure_logging
from custom_api_auth.core.settings import settings

logger = logging.getLogger(__name__)


async def token_rejected_handler(request: Request, exc: TokenRejectedError) -> JSONResponse:
    """Answer with a generic 401 while keeping the cookie-removal headers."""
    response = JSONResponse(
        status_code=exc.result.status,
        content={"detail": "Unauthorized"},
    )
    if exc.response is not None:
        for cookie in exc.response.headers.getlist("set-cookie"):
            response.headers.append("set-cookie", cookie)
    return response


def create_app(registry: RouteRegistry | None = None) -> FastAPI:
    """Build the application and mount every registered resource once."""
    configure_logging()
    registry = registry or build_default_registry()

    app = FastAPI(
        title=settings.app_name,
        description="Encrypted cookie auth tokens with replay-protected sessions",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[settings.token_header_name],
    )
    app.add_exception_handler(TokenRejectedError, token_rejected_handler)  # type: ignore[arg-type]

    for name, router in registry:
        app.include_router(router, prefix=registry.prefix)
        logger.debug("Mounted resource %s", name)
    registry.freeze()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("custom_api_auth.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
