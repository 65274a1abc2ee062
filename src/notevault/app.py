"""FastAPI application factory for notevault."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from fastapi import FastAPI

from notevault import __version__
from notevault.routes import health, vault
from notevault.services import VaultServices, open_services


def create_app(services_factory: Callable[[Path], VaultServices] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services_factory`` builds the per-request services for a project root;
    it defaults to LanceDB storage and the HTTP embedding client.
    """
    app = FastAPI(
        title="notevault",
        version=__version__,
        description="Semantic search over a vault of markdown notes",
    )
    app.state.services_factory = services_factory or open_services

    # Register route modules
    app.include_router(health.router)
    app.include_router(vault.router)

    return app
