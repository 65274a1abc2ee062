"""Tests for the in-memory vector index."""

from __future__ import annotations

import pytest

from notevault.vault.schema import NoteChunk, VaultNote
from notevault.vault.store import InMemoryVectorIndex, VectorIndex, cosine_similarity


def _chunk(note_id: str, index: int, vector: list[float], text: str = "text") -> NoteChunk:
    return NoteChunk(note_id=note_id, chunk_index=index, chunk_text=text, embedding=vector)


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


class TestInMemoryVectorIndex:
    def test_satisfies_protocol(self, memory_store: InMemoryVectorIndex):
        assert isinstance(memory_store, VectorIndex)

    def test_upsert_keeps_id(self, memory_store: InMemoryVectorIndex):
        first = memory_store.upsert_note(VaultNote(file_path="a.md", content_hash="h1"))
        second = memory_store.upsert_note(VaultNote(file_path="a.md", content_hash="h2", title="A"))
        assert first == second
        assert memory_store.get_note_hashes() == {"a.md": "h2"}
        assert memory_store.get_note("a.md").title == "A"
        assert memory_store.count_notes() == 1

    def test_replace_is_wholesale(self, memory_store: InMemoryVectorIndex):
        note_id = memory_store.upsert_note(VaultNote(file_path="a.md", content_hash="h"))
        memory_store.replace_chunks_for_note(note_id, [_chunk(note_id, i, [1.0, 0.0]) for i in range(3)])
        assert memory_store.count_chunks() == 3

        memory_store.replace_chunks_for_note(note_id, [_chunk(note_id, 0, [0.0, 1.0], "new")])
        chunks = memory_store.get_chunks(note_id)
        assert [c.chunk_text for c in chunks] == ["new"]

        memory_store.replace_chunks_for_note(note_id, [])
        assert memory_store.count_chunks() == 0

    def test_replace_rejects_foreign_chunks(self, memory_store: InMemoryVectorIndex):
        with pytest.raises(ValueError):
            memory_store.replace_chunks_for_note("a", [_chunk("b", 0, [1.0])])

    def test_nearest_neighbors(self, memory_store: InMemoryVectorIndex):
        a = memory_store.upsert_note(VaultNote(file_path="a.md", content_hash="h", title="A"))
        b = memory_store.upsert_note(VaultNote(file_path="b.md", content_hash="h"))
        memory_store.replace_chunks_for_note(a, [_chunk(a, 0, [1.0, 0.0], "alpha")])
        memory_store.replace_chunks_for_note(b, [_chunk(b, 0, [0.6, 0.8], "beta")])

        results = memory_store.nearest_neighbors([1.0, 0.0], k=5, min_score=0.0)
        assert [r.file_path for r in results] == ["a.md", "b.md"]
        assert results[0].title == "A"
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(0.6)

        filtered = memory_store.nearest_neighbors([1.0, 0.0], k=5, min_score=0.7)
        assert [r.file_path for r in filtered] == ["a.md"]

        assert len(memory_store.nearest_neighbors([1.0, 0.0], k=1, min_score=0.0)) == 1

    def test_skips_mismatched_dimensions(self, memory_store: InMemoryVectorIndex):
        a = memory_store.upsert_note(VaultNote(file_path="a.md", content_hash="h"))
        memory_store.replace_chunks_for_note(a, [_chunk(a, 0, [1.0, 0.0, 0.0])])
        assert memory_store.nearest_neighbors([1.0, 0.0], k=5, min_score=0.0) == []

    def test_delete_notes(self, memory_store: InMemoryVectorIndex):
        for path in ("a.md", "b.md", "c.md"):
            note_id = memory_store.upsert_note(VaultNote(file_path=path, content_hash="h"))
            memory_store.replace_chunks_for_note(note_id, [_chunk(note_id, 0, [1.0])])

        assert memory_store.delete_notes(["a.md", "b.md", "missing.md"]) == 2
        assert memory_store.get_note_hashes() == {"c.md": "h"}
        assert memory_store.count_chunks() == 1
        assert memory_store.delete_note("c.md") is True
        assert memory_store.delete_note("c.md") is False
