"""FastAPI application factory."""

from __future__ import annotations

from typing import Iterable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import routes
from core.service import TriageService


def create_app(
    service: TriageService,
    api_key: str,
    cors_origins: Optional[Iterable[str]] = None,
) -> FastAPI:
    """Build the control surface around an already constructed service."""

    app = FastAPI(
        title="mentionwatch",
        description="Control surface for the group mention triage bot",
        version="0.1.0",
    )
    app.state.service = service
    app.state.api_key = api_key

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins or ["*"]),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.public)
    app.include_router(routes.router)
    return app
