# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Main FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from toolshare import __version__
from toolshare.config import configure_logging, get_settings, init_settings
from toolshare.database import init_database
from toolshare.errors import DomainError, UnavailableError, ValidationError
from toolshare.routes import api_router
from toolshare.utils.helpers import envelope

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Initialize settings
    config_path = os.environ.get("TOOLSHARE_CONFIG")
    settings = init_settings(config_path)
    configure_logging(settings)

    logger.info("Starting ToolShare v%s", __version__)

    # Initialize database
    init_database()

    yield

    logger.info("ToolShare stopped")


def error_response(status_code: int, message: str, error_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(None, message, success=False, error_code=error_code),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the standard envelope."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return error_response(exc.status_code, exc.message, exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", ValidationError.default_message) if errors else ValidationError.default_message
        return error_response(400, message, ValidationError.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.warning("Store error on %s %s: %s", request.method, request.url.path, exc)
        return error_response(
            UnavailableError.status_code,
            UnavailableError.default_message,
            UnavailableError.error_code,
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if get_settings().app.debug else "Internal server error"
        return error_response(500, message, 1500)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ToolShare",
        description="Community tool lending service",
        version=__version__,
        license_info={
            "name": "AGPL-3.0-or-later",
            "url": "https://www.gnu.org/licenses/agpl-3.0.html",
        },
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app.debug else [settings.app.base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(api_router)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return envelope({"status": "healthy", "version": __version__})

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "toolshare.main:app",
        host=settings.app.host,
        port=settings.app.port,
        reload=settings.app.debug,
    )
