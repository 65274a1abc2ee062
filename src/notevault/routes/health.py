"""Health check endpoint."""

from __future__ import annotations

import os

from fastapi import APIRouter

from notevault import __version__
from notevault.config import API_KEY_ENV_VARS
from notevault.models.responses import HealthResponse

router = APIRouter()


def _detect_capabilities() -> list[str]:
    """Report which parts of the pipeline can run in this process."""
    caps = []
    try:
        import lancedb  # noqa: F401
        caps.append("vector_store")
    except ImportError:
        pass
    if any(os.environ.get(name) for name in API_KEY_ENV_VARS):
        caps.append("embeddings")
    return caps


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return service health status and available capabilities."""
    return HealthResponse(
        status="ok",
        version=__version__,
        capabilities=_detect_capabilities(),
    )
