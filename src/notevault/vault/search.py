"""Semantic vault search with date-aware query expansion.

The query is expanded with concrete date terms ("last week" becomes
``2026-W03 2026-01-12 ...``), embedded, and matched against chunk vectors.
Results are collapsed to the best chunk per note so that one long note
cannot fill the whole result list.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from notevault.vault.dates import DateQueryTranslator
from notevault.vault.embeddings import EmbeddingClient
from notevault.vault.schema import IndexStats, SearchDebugReport, SearchResult
from notevault.vault.store import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.3
DEBUG_HITS = 5
DEBUG_PREVIEW = 5


def dedupe_by_note(results: list[SearchResult], top_k: int) -> list[SearchResult]:
    """Keep the highest-scoring chunk per file, best first, at most ``top_k``."""
    best: dict[str, SearchResult] = {}
    for result in results:
        current = best.get(result.file_path)
        if current is None or result.score > current.score:
            best[result.file_path] = result
    ranked = sorted(best.values(), key=lambda r: r.score, reverse=True)
    return ranked[:max(0, top_k)]


class VaultSearchEngine:
    """Answer natural-language queries against the vault index."""

    def __init__(
        self,
        store: VectorIndex,
        embeddings: EmbeddingClient,
        translator: DateQueryTranslator | None = None,
        enabled: bool = True,
        top_k: int = DEFAULT_TOP_K,
        min_score: float = DEFAULT_MIN_SCORE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.translator = translator or DateQueryTranslator()
        self.enabled = enabled
        self.top_k = top_k
        self.min_score = min_score
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Any, store: VectorIndex, embeddings: EmbeddingClient) -> VaultSearchEngine:
        return cls(
            store=store,
            embeddings=embeddings,
            enabled=settings.search_enabled,
            top_k=settings.top_k,
            min_score=settings.min_score,
        )

    async def search(
        self,
        query: str,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        """Return up to ``top_k`` results, at most one per note."""
        if not self.enabled:
            return []
        if not query or not query.strip():
            return []

        top_k = self.top_k if top_k is None else top_k
        min_score = self.min_score if min_score is None else min_score
        if top_k <= 0:
            return []

        translated = self.translator.translate(query, self.clock())
        if translated.date_terms:
            logger.debug(
                "Query %r expanded with %d date terms (%s to %s)",
                query, len(translated.date_terms), translated.start_date, translated.end_date,
            )

        vector = await self.embeddings.get_embedding(translated.combined_query)
        # Over-fetch: several hits may collapse into one note
        candidates = await asyncio.to_thread(
            self.store.nearest_neighbors, vector, top_k * 2, min_score,
        )
        results = dedupe_by_note(candidates, top_k)
        logger.debug("Search %r: %d candidates, %d results", query, len(candidates), len(results))
        return results

    async def is_available(self) -> bool:
        if not self.enabled:
            return False
        return await asyncio.to_thread(self.store.is_available)

    async def get_stats(self) -> IndexStats:
        notes = await asyncio.to_thread(self.store.count_notes)
        chunks = await asyncio.to_thread(self.store.count_chunks)
        return IndexStats(
            indexed_notes=notes,
            indexed_chunks=chunks,
            vector_search_available=await self.is_available(),
        )

    async def debug_search(self, query: str) -> SearchDebugReport:
        """Explain a query: its expansion, its embedding and the raw nearest
        chunks regardless of ``min_score``.

        Failures are reported on the returned report instead of raised, since
        this is how a user finds out why a search comes back empty.
        """
        translated = self.translator.translate(query, self.clock())
        report = SearchDebugReport(
            query=query,
            combined_query=translated.combined_query,
            date_terms=list(translated.date_terms),
            enabled=self.enabled,
            top_k=self.top_k,
            min_score=self.min_score,
        )
        try:
            report.indexed_notes = await asyncio.to_thread(self.store.count_notes)
            report.indexed_chunks = await asyncio.to_thread(self.store.count_chunks)
            vector = await self.embeddings.get_embedding(translated.combined_query)
            report.embedding_dimensions = len(vector)
            report.embedding_preview = list(vector[:DEBUG_PREVIEW])
            # Cosine scores never go below -1
            report.hits = await asyncio.to_thread(
                self.store.nearest_neighbors, vector, DEBUG_HITS, -1.0,
            )
        except Exception as e:
            logger.exception("Debug search for %r failed", query)
            report.error = f"{type(e).__name__}: {e}"
        return report
