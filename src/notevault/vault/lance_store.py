"""LanceDB-backed vector index.

Two tables live in one LanceDB directory: ``vault_notes`` (one row per
markdown file) and ``note_chunks`` (embedded chunks). The chunks table is
created on the first write, once the embedding dimension is known.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

import pyarrow as pa

from notevault.vault.schema import CHUNKS_TABLE, NOTES_TABLE, NoteChunk, SearchResult, VaultNote

logger = logging.getLogger(__name__)

# Keep IN (...) filters to a reasonable length
_FILTER_BATCH = 500

NOTES_SCHEMA = pa.schema([
    pa.field("id", pa.string(), nullable=False),
    pa.field("file_path", pa.string(), nullable=False),
    pa.field("title", pa.string()),
    pa.field("content_hash", pa.string(), nullable=False),
    pa.field("file_modified_at", pa.timestamp("us", tz="UTC")),
    pa.field("created_at", pa.timestamp("us", tz="UTC")),
    pa.field("updated_at", pa.timestamp("us", tz="UTC")),
])


def chunks_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("chunk_id", pa.string(), nullable=False),
        pa.field("note_id", pa.string(), nullable=False),
        pa.field("chunk_index", pa.int32(), nullable=False),
        pa.field("chunk_text", pa.string()),
        pa.field("start_line", pa.int32()),
        pa.field("end_line", pa.int32()),
        pa.field("created_at", pa.timestamp("us", tz="UTC")),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _in_filter(column: str, values: Sequence[str]) -> str:
    return f"{column} IN ({', '.join(_quote(v) for v in values)})"


def _batched(values: Sequence[str], size: int = _FILTER_BATCH) -> Iterable[list[str]]:
    for i in range(0, len(values), size):
        yield list(values[i:i + size])


def _note_to_row(note: VaultNote) -> dict[str, Any]:
    return {
        "id": note.id,
        "file_path": note.file_path,
        "title": note.title,
        "content_hash": note.content_hash,
        "file_modified_at": note.file_modified_at,
        "created_at": note.created_at,
        "updated_at": note.updated_at,
    }


def _chunk_to_row(chunk: NoteChunk) -> dict[str, Any]:
    return {
        "chunk_id": chunk.chunk_id,
        "note_id": chunk.note_id,
        "chunk_index": chunk.chunk_index,
        "chunk_text": chunk.chunk_text,
        "start_line": chunk.start_line,
        "end_line": chunk.end_line,
        "created_at": chunk.created_at,
        "vector": [float(v) for v in chunk.embedding or []],
    }


class LanceVectorIndex:
    """Vector index stored in a local LanceDB directory."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._db: Any = None
        # Serializes read-modify-write sequences issued from worker threads
        self._write_lock = threading.Lock()

    def _connect(self) -> Any:
        if self._db is None:
            import lancedb

            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(str(self.db_path))
        return self._db

    def _open(self, name: str) -> Any | None:
        db = self._connect()
        try:
            return db.open_table(name)
        except (FileNotFoundError, ValueError):
            return None

    def _notes_table(self) -> Any:
        table = self._open(NOTES_TABLE)
        if table is None:
            table = self._connect().create_table(NOTES_TABLE, schema=NOTES_SCHEMA, exist_ok=True)
        return table

    def _notes_matching(self, column: str, values: Sequence[str]) -> list[dict[str, Any]]:
        table = self._open(NOTES_TABLE)
        if table is None or not values:
            return []
        # Both key columns are unique, so one row per value at most
        return (
            table.search()
            .where(_in_filter(column, values))
            .limit(len(values))
            .to_arrow()
            .to_pylist()
        )

    # -- VectorIndex ---------------------------------------------------------

    def get_note_hashes(self) -> dict[str, str]:
        table = self._open(NOTES_TABLE)
        if table is None:
            return {}
        rows = table.to_arrow().select(["file_path", "content_hash"]).to_pylist()
        return {row["file_path"]: row["content_hash"] for row in rows}

    def get_note(self, file_path: str) -> VaultNote | None:
        rows = self._notes_matching("file_path", [file_path])
        if not rows:
            return None
        row = rows[0]
        return VaultNote(
            id=row["id"],
            file_path=row["file_path"],
            title=row.get("title"),
            content_hash=row["content_hash"],
            file_modified_at=row["file_modified_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def upsert_note(self, note: VaultNote) -> str:
        with self._write_lock:
            table = self._notes_table()
            existing = self.get_note(note.file_path)
            row = _note_to_row(note)
            if existing is not None:
                row["id"] = existing.id
                row["created_at"] = existing.created_at
                row["updated_at"] = datetime.now(timezone.utc)
            (
                table.merge_insert("file_path")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(pa.Table.from_pylist([row], schema=NOTES_SCHEMA))
            )
            return row["id"]

    def replace_chunks_for_note(self, note_id: str, chunks: Sequence[NoteChunk]) -> None:
        """Swap a note's chunk set in a single table commit."""
        for chunk in chunks:
            if chunk.note_id != note_id:
                raise ValueError(f"Chunk {chunk.chunk_id} does not belong to note {note_id}")
            if not chunk.embedding:
                raise ValueError(f"Chunk {chunk.chunk_id} has no embedding")

        owner = f"note_id = {_quote(note_id)}"
        with self._write_lock:
            table = self._open(CHUNKS_TABLE)
            if not chunks:
                if table is not None:
                    table.delete(owner)
                return

            if table is None:
                schema = chunks_schema(len(chunks[0].embedding or []))
                table = self._connect().create_table(CHUNKS_TABLE, schema=schema, exist_ok=True)

            data = pa.Table.from_pylist([_chunk_to_row(c) for c in chunks], schema=table.schema)
            (
                table.merge_insert("chunk_id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .when_not_matched_by_source_delete(owner)
                .execute(data)
            )

    def nearest_neighbors(
        self, vector: Sequence[float], k: int, min_score: float,
    ) -> list[SearchResult]:
        if k <= 0:
            return []
        table = self._open(CHUNKS_TABLE)
        if table is None or table.count_rows() == 0:
            return []

        hits = (
            table.search([float(v) for v in vector])
            .distance_type("cosine")
            .limit(k)
            .to_list()
        )

        # Cosine distance is 1 - similarity
        scored = [(1.0 - float(hit.get("_distance", 1.0)), hit) for hit in hits]
        scored = [(score, hit) for score, hit in scored if score >= min_score]
        if not scored:
            return []

        note_ids = sorted({hit["note_id"] for _, hit in scored})
        notes: dict[str, dict[str, Any]] = {}
        for batch in _batched(note_ids):
            for row in self._notes_matching("id", batch):
                notes[row["id"]] = row

        results = []
        for score, hit in scored:
            note = notes.get(hit["note_id"])
            if note is None:
                continue
            results.append(SearchResult(
                file_path=note["file_path"],
                title=note.get("title"),
                chunk_text=hit.get("chunk_text") or "",
                score=score,
                chunk_index=hit.get("chunk_index", 0),
                start_line=hit.get("start_line"),
            ))
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def delete_notes(self, file_paths: Iterable[str]) -> int:
        paths = sorted(set(file_paths))
        if not paths:
            return 0

        removed = 0
        with self._write_lock:
            notes = self._open(NOTES_TABLE)
            if notes is None:
                return 0
            chunks = self._open(CHUNKS_TABLE)
            for batch in _batched(paths):
                ids = [row["id"] for row in self._notes_matching("file_path", batch)]
                if not ids:
                    continue
                if chunks is not None:
                    chunks.delete(_in_filter("note_id", ids))
                notes.delete(_in_filter("id", ids))
                removed += len(ids)

        logger.debug("Deleted %d notes from %s", removed, self.db_path)
        return removed

    def delete_note(self, file_path: str) -> bool:
        return self.delete_notes([file_path]) == 1

    def is_available(self) -> bool:
        try:
            self._connect()
        except (ImportError, OSError) as e:
            logger.warning("LanceDB unavailable at %s: %s", self.db_path, e)
            return False
        return True

    def count_notes(self) -> int:
        table = self._open(NOTES_TABLE)
        return table.count_rows() if table is not None else 0

    def count_chunks(self) -> int:
        table = self._open(CHUNKS_TABLE)
        return table.count_rows() if table is not None else 0
