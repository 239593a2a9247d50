"""FastAPI application factory."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import api_router
from app.config import settings


def create_app() -> FastAPI:
    """Build the registration API that browsers call to manage push subscriptions."""

    app = FastAPI(title=settings.PROJECT_NAME, version="0.1.0")

    # Subscriptions are registered from the web client's origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
