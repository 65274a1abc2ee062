"""Data model for the vault index: notes, chunks, and search/indexing results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


NOTES_TABLE = "vault_notes"
CHUNKS_TABLE = "note_chunks"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VaultNote:
    """A markdown note tracked by the index, keyed by its vault-relative path."""
    file_path: str
    content_hash: str
    title: str | None = None
    file_modified_at: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class ChunkInfo:
    """A chunk of note text before it has been embedded."""
    text: str
    chunk_index: int
    start_line: int
    end_line: int


@dataclass
class NoteChunk:
    """An embedded chunk owned by exactly one note."""
    note_id: str
    chunk_index: int
    chunk_text: str
    start_line: int | None = None
    end_line: int | None = None
    embedding: list[float] | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def chunk_id(self) -> str:
        return f"{self.note_id}:{self.chunk_index}"


@dataclass
class SearchResult:
    """A single ranked hit from vector search."""
    file_path: str
    chunk_text: str
    score: float
    chunk_index: int = 0
    title: str | None = None
    start_line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "title": self.title,
            "chunk_text": self.chunk_text,
            "score": round(self.score, 4),
            "start_line": self.start_line,
            "chunk_index": self.chunk_index,
        }


@dataclass
class IndexingResult:
    """Summary of one indexing run. Per-file failures end up in ``errors``."""
    notes_scanned: int = 0
    notes_added: int = 0
    notes_updated: int = 0
    notes_removed: int = 0
    chunks_created: int = 0
    duration: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "notes_scanned": self.notes_scanned,
            "notes_added": self.notes_added,
            "notes_updated": self.notes_updated,
            "notes_removed": self.notes_removed,
            "chunks_created": self.chunks_created,
            "duration": round(self.duration, 3),
            "errors": list(self.errors),
        }


@dataclass
class IndexStats:
    """Counts reported by the search engine for status displays."""
    indexed_notes: int = 0
    indexed_chunks: int = 0
    vector_search_available: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "indexed_notes": self.indexed_notes,
            "indexed_chunks": self.indexed_chunks,
            "vector_search_available": self.vector_search_available,
        }


@dataclass
class SearchDebugReport:
    """Everything a search would do, with the score threshold switched off."""
    query: str
    combined_query: str
    date_terms: list[str] = field(default_factory=list)
    enabled: bool = True
    top_k: int = 0
    min_score: float = 0.0
    indexed_notes: int = 0
    indexed_chunks: int = 0
    embedding_dimensions: int = 0
    embedding_preview: list[float] = field(default_factory=list)
    hits: list[SearchResult] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "combined_query": self.combined_query,
            "date_terms": list(self.date_terms),
            "enabled": self.enabled,
            "top_k": self.top_k,
            "min_score": self.min_score,
            "indexed_notes": self.indexed_notes,
            "indexed_chunks": self.indexed_chunks,
            "embedding_dimensions": self.embedding_dimensions,
            "embedding_preview": [round(v, 6) for v in self.embedding_preview],
            "hits": [hit.to_dict() for hit in self.hits],
            "error": self.error,
        }

    def format(self) -> str:
        lines = [
            f"=== Debug search for: {self.query} ===",
            f"enabled: {self.enabled}",
            f"top_k: {self.top_k}",
            f"min_score: {self.min_score}",
            f"indexed: {self.indexed_notes} notes, {self.indexed_chunks} chunks",
            f"embedded query: {self.combined_query}",
        ]
        if self.embedding_dimensions:
            preview = ", ".join(f"{v:.6f}" for v in self.embedding_preview)
            lines.append(f"embedding: {self.embedding_dimensions} dimensions, first values [{preview}]")
        lines.append(f"raw hits (no score threshold): {len(self.hits)}")
        for hit in self.hits:
            marker = "" if hit.score >= self.min_score else "  (below min_score)"
            lines.append(f"  {hit.score:.4f}  {hit.file_path}#{hit.chunk_index}{marker}")
        if self.error:
            lines.append(f"ERROR: {self.error}")
        return "\n".join(lines)
