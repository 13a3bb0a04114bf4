from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from blogweb.application.dtos.common_dto import HealthResponse, RootResponse
from blogweb.infrastructure.api.middlewares import add_default_middlewares, add_exception_handlers
from blogweb.infrastructure.api.routes.auth_routes import router as auth_router
from blogweb.infrastructure.api.routes.message_routes import router as message_router
from blogweb.infrastructure.api.routes.post_routes import router as post_router
from blogweb.infrastructure.api.routes.profile_routes import router as profile_router
from blogweb.infrastructure.database.supabase_client import Backend, create_backend
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(
    backend: Backend | None = None,
    generator: GeminiTextGenerator | None = None,
) -> FastAPI:
    configure_logging()
    backend = backend or create_backend()
    generator = generator or GeminiTextGenerator.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if backend.realtime is not None:
            await backend.realtime.close()

    app = FastAPI(
        title="Blog Web Backend",
        version="0.1.0",
        lifespan=lifespan,
        description="""
        ## Blog Web Backend API

        Backend for the Blog Web single-page app. Supabase provides auth,
        the database, storage and realtime; this service drives them.

        ### Features
        - **Authentication**: Email/password sign-up, sign-in, refresh and sign-out
        - **Profile**: Display name and avatar, completing the profile setup
        - **Posts**: Create posts with optional image and AI-drafted body
        - **Feed**: Own or all posts, sorted, searchable, filterable by image
        - **Direct Messages**: Peer list, history and a live WebSocket conversation

        ### Authentication
        All endpoints except root, health, sign-up, sign-in and refresh require a
        Bearer token in the Authorization header:
        ```
        Authorization: Bearer your-access-token
        ```
        The conversation WebSocket takes the token as a `token` query parameter.

        ### Error Responses
        - **400 Bad Request**: Missing field, invalid image or a Supabase error (message verbatim)
        - **401 Unauthorized**: Missing or invalid token, or wrong credentials
        - **422 Unprocessable Entity**: Malformed request
        - **502 Bad Gateway**: Content generation failed
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.backend = backend
    app.state.generator = generator
    add_default_middlewares(app)
    add_exception_handlers(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the Blog Web API",
    )
    def root():
        """Get API root information."""
        return {
            "status": "ok",
            "service": "blogweb-backend",
            "version": app.version,
            "backend": "memory" if backend.in_memory else "supabase",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(post_router)
    app.include_router(message_router)
    logger.info("Blog Web backend ready (%s backend)", "memory" if backend.in_memory else "supabase")
    return app


app = create_app()
