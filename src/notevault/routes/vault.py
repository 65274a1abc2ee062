"""Vault search, indexing and stats endpoints."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Query, Request

from notevault.models.requests import VaultIndexRequest, VaultSearchRequest
from notevault.models.responses import (
    VaultIndexResponse,
    VaultSearchResponse,
    VaultSearchResult,
    VaultStatsResponse,
)
from notevault.services import VaultServices
from notevault.vault.citations import citations_from_results, format_citations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vault")


def _open(request: Request, project_root: str) -> VaultServices:
    return request.app.state.services_factory(Path(project_root))


@router.post("/search", response_model=VaultSearchResponse)
async def search_vault_endpoint(req: VaultSearchRequest, request: Request) -> VaultSearchResponse:
    """Search the vault."""
    try:
        async with _open(request, req.project_root) as services:
            results = await services.search.search(req.query, top_k=req.top_k, min_score=req.min_score)
            citations = None
            if req.include_citations:
                citations = format_citations(
                    citations_from_results(results),
                    services.settings.vault_name,
                    services.settings.max_citations,
                ) or None
        return VaultSearchResponse(
            success=True,
            query=req.query,
            results=[VaultSearchResult(**r.to_dict()) for r in results],
            citations=citations,
        )
    except Exception as e:
        logger.exception("Vault search failed")
        return VaultSearchResponse(success=False, query=req.query, error=str(e))


@router.post("/index", response_model=VaultIndexResponse)
async def index_vault_endpoint(req: VaultIndexRequest, request: Request) -> VaultIndexResponse:
    """Index the vault, or one note."""
    try:
        async with _open(request, req.project_root) as services:
            if req.note:
                result = await services.indexer.index_note(req.note)
            else:
                result = await services.indexer.index_vault()
        return VaultIndexResponse(success=result.success, **result.to_dict())
    except Exception as e:
        logger.exception("Vault indexing failed")
        return VaultIndexResponse(success=False, error=str(e))


@router.get("/stats", response_model=VaultStatsResponse)
async def vault_stats_endpoint(
    request: Request,
    project_root: str = Query(..., description="Project root directory path"),
) -> VaultStatsResponse:
    """Report index counts and whether vector search is usable."""
    try:
        async with _open(request, project_root) as services:
            stats = await services.search.get_stats()
        return VaultStatsResponse(success=True, **stats.to_dict())
    except Exception as e:
        logger.exception("Vault stats failed")
        return VaultStatsResponse(success=False, error=str(e))
