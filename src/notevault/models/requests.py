"""Pydantic request models for the notevault API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class VaultSearchRequest(BaseModel):
    """Request to search the vault."""
    query: str = Field(..., min_length=1, description="Natural language search query")
    project_root: str = Field(..., description="Project root directory path")
    top_k: int | None = Field(default=None, ge=1, le=50, description="Maximum results to return")
    min_score: float | None = Field(default=None, ge=0.0, le=1.0, description="Minimum similarity score")
    include_citations: bool = Field(default=True, description="Render an Obsidian Sources block")


class VaultIndexRequest(BaseModel):
    """Request to index the vault, or a single note."""
    project_root: str = Field(..., description="Project root directory path")
    note: str | None = Field(default=None, description="Vault-relative path of one note to index")
