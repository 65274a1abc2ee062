"""Vector index protocol and an in-memory implementation.

Storage calls are synchronous; the indexer and search engine run them in a
worker thread. ``replace_chunks_for_note`` must be atomic from a reader's
point of view: a search sees either the old chunk set or the new one.
"""

from __future__ import annotations

import math
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Protocol, Sequence, runtime_checkable

from notevault.vault.schema import NoteChunk, SearchResult, VaultNote


@runtime_checkable
class VectorIndex(Protocol):
    def get_note_hashes(self) -> dict[str, str]: ...

    def upsert_note(self, note: VaultNote) -> str: ...

    def replace_chunks_for_note(self, note_id: str, chunks: Sequence[NoteChunk]) -> None: ...

    def nearest_neighbors(
        self, vector: Sequence[float], k: int, min_score: float,
    ) -> list[SearchResult]: ...

    def delete_notes(self, file_paths: Iterable[str]) -> int: ...

    def delete_note(self, file_path: str) -> bool: ...

    def is_available(self) -> bool: ...

    def count_notes(self) -> int: ...

    def count_chunks(self) -> int: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorIndex:
    """Brute-force cosine index held in process memory.

    Used by tests and for small vaults; nothing survives the process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notes: dict[str, VaultNote] = {}
        self._chunks: dict[str, tuple[NoteChunk, ...]] = {}

    def get_note_hashes(self) -> dict[str, str]:
        with self._lock:
            return {path: note.content_hash for path, note in self._notes.items()}

    def get_note(self, file_path: str) -> VaultNote | None:
        with self._lock:
            return self._notes.get(file_path)

    def upsert_note(self, note: VaultNote) -> str:
        """Insert or update by ``file_path``; an existing note keeps its id."""
        with self._lock:
            existing = self._notes.get(note.file_path)
            if existing is None:
                self._notes[note.file_path] = replace(note)
                return note.id
            self._notes[note.file_path] = replace(
                existing,
                title=note.title,
                content_hash=note.content_hash,
                file_modified_at=note.file_modified_at,
                updated_at=datetime.now(timezone.utc),
            )
            return existing.id

    def replace_chunks_for_note(self, note_id: str, chunks: Sequence[NoteChunk]) -> None:
        new_chunks = tuple(chunks)
        for chunk in new_chunks:
            if chunk.note_id != note_id:
                raise ValueError(f"Chunk {chunk.chunk_id} does not belong to note {note_id}")
        with self._lock:
            if new_chunks:
                self._chunks[note_id] = new_chunks
            else:
                self._chunks.pop(note_id, None)

    def get_chunks(self, note_id: str) -> list[NoteChunk]:
        with self._lock:
            return list(self._chunks.get(note_id, ()))

    def nearest_neighbors(
        self, vector: Sequence[float], k: int, min_score: float,
    ) -> list[SearchResult]:
        if k <= 0:
            return []
        with self._lock:
            notes_by_id = {note.id: note for note in self._notes.values()}
            chunk_sets = list(self._chunks.items())

        results: list[SearchResult] = []
        for note_id, chunks in chunk_sets:
            note = notes_by_id.get(note_id)
            if note is None:
                continue
            for chunk in chunks:
                # Vectors from a different model cannot be compared
                if not chunk.embedding or len(chunk.embedding) != len(vector):
                    continue
                score = cosine_similarity(vector, chunk.embedding)
                if score < min_score:
                    continue
                results.append(SearchResult(
                    file_path=note.file_path,
                    title=note.title,
                    chunk_text=chunk.chunk_text,
                    score=score,
                    chunk_index=chunk.chunk_index,
                    start_line=chunk.start_line,
                ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:k]

    def delete_notes(self, file_paths: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for path in set(file_paths):
                note = self._notes.pop(path, None)
                if note is not None:
                    self._chunks.pop(note.id, None)
                    removed += 1
        return removed

    def delete_note(self, file_path: str) -> bool:
        return self.delete_notes([file_path]) == 1

    def is_available(self) -> bool:
        return True

    def count_notes(self) -> int:
        with self._lock:
            return len(self._notes)

    def count_chunks(self) -> int:
        with self._lock:
            return sum(len(chunks) for chunks in self._chunks.values())
