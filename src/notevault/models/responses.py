"""Pydantic response models for the notevault API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    capabilities: list[str] = Field(default_factory=list)


class VaultSearchResult(BaseModel):
    """A single vault search result."""
    file_path: str
    title: str | None = None
    chunk_text: str
    score: float
    start_line: int | None = None
    chunk_index: int = 0


class VaultSearchResponse(BaseModel):
    """Response from vault search."""
    success: bool
    query: str
    results: list[VaultSearchResult] = Field(default_factory=list)
    citations: str | None = None
    error: str | None = None


class VaultIndexResponse(BaseModel):
    """Response from vault indexing."""
    success: bool
    notes_scanned: int = 0
    notes_added: int = 0
    notes_updated: int = 0
    notes_removed: int = 0
    chunks_created: int = 0
    duration: float = 0.0
    errors: list[str] = Field(default_factory=list)
    error: str | None = None


class VaultStatsResponse(BaseModel):
    """Index statistics."""
    success: bool
    indexed_notes: int = 0
    indexed_chunks: int = 0
    vector_search_available: bool = False
    error: str | None = None
