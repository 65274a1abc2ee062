"""Vault indexer: markdown files in, embedded chunks out.

Indexing is incremental. Each run hashes every matching file (SHA-256),
compares against the hashes stored with the note records, and only chunks
and embeds files that are new or changed. Files that disappeared from disk
are deleted from the index in one bulk call.

Embedding is batched across all pending notes, not per note. A note is
written (note record, then a wholesale chunk replace) only once every one
of its chunks has a vector, so a note whose chunks straddle two batches is
never stored half-embedded.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from notevault.vault.chunker import NoteChunker, extract_title
from notevault.vault.embeddings import EmbeddingClient, EmbeddingConfigError, EmbeddingError
from notevault.vault.schema import ChunkInfo, IndexingResult, NoteChunk, VaultNote
from notevault.vault.store import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = "**/*.md"
DEFAULT_EXCLUDE = ("**/templates/**", "**/.obsidian/**")
DEFAULT_BATCH_SIZE = 100


class VaultNotFoundError(FileNotFoundError):
    """The configured vault root does not exist or is not a directory."""


# One lock per (event loop, vault root): a vault is indexed by one run at a time
_vault_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)


def get_vault_lock(vault_root: Path) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _vault_locks.setdefault(loop, {})
    key = str(vault_root.resolve())
    if key not in locks:
        locks[key] = asyncio.Lock()
    return locks[key]


def compute_content_hash(data: bytes) -> str:
    """Compute SHA256 hash of file content."""
    return hashlib.sha256(data).hexdigest()


@lru_cache(maxsize=128)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``**``-aware glob into a regex over posix relative paths."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == len(pattern):
            parts.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def glob_match(rel_path: str, pattern: str) -> bool:
    return _glob_regex(pattern).match(rel_path) is not None


def find_changes(
    current: dict[str, str],
    previous: dict[str, str],
) -> tuple[list[str], list[str], list[str]]:
    """Find added, modified, and deleted files.

    Returns (added, modified, deleted) file lists.
    """
    added = [f for f in current if f not in previous]
    deleted = [f for f in previous if f not in current]
    modified = [
        f for f in current
        if f in previous and current[f] != previous[f]
    ]
    return added, modified, deleted


@dataclass
class _PendingNote:
    """A new or changed note waiting for its chunk vectors."""
    note: VaultNote
    is_new: bool
    chunks: list[ChunkInfo]
    vectors: list[list[float] | None] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.vectors = [None] * len(self.chunks)

    @property
    def complete(self) -> bool:
        return all(v is not None for v in self.vectors)


class VaultIndexer:
    """Keep a vector index in sync with a directory of markdown notes."""

    def __init__(
        self,
        vault_root: Path | str,
        store: VectorIndex,
        embeddings: EmbeddingClient,
        chunker: NoteChunker | None = None,
        include: str = DEFAULT_INCLUDE,
        exclude: Sequence[str] = DEFAULT_EXCLUDE,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.vault_root = Path(vault_root)
        self.store = store
        self.embeddings = embeddings
        self.chunker = chunker or NoteChunker()
        self.include = include
        self.exclude = tuple(exclude)
        self.batch_size = max(1, batch_size)

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        vault_root: Path,
        store: VectorIndex,
        embeddings: EmbeddingClient,
    ) -> VaultIndexer:
        return cls(
            vault_root=vault_root,
            store=store,
            embeddings=embeddings,
            chunker=NoteChunker(settings.chunk_target_tokens, settings.chunk_overlap_tokens),
            include=settings.include,
            exclude=settings.exclude,
            batch_size=settings.embedding_batch_size,
        )

    # -- scanning ------------------------------------------------------------

    def is_indexable(self, rel_path: str) -> bool:
        if not glob_match(rel_path, self.include):
            return False
        return not any(glob_match(rel_path, pattern) for pattern in self.exclude)

    def scan_files(self) -> dict[str, Path]:
        """Map vault-relative posix paths to files matching include/exclude."""
        files: dict[str, Path] = {}
        for path in sorted(self.vault_root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(self.vault_root).as_posix()
            if self.is_indexable(rel):
                files[rel] = path
        return files

    def _require_vault(self) -> None:
        if not self.vault_root.is_dir():
            raise VaultNotFoundError(f"Vault directory not found: {self.vault_root}")

    def _relative_path(self, file_path: Path | str) -> tuple[str, Path]:
        path = Path(file_path)
        if not path.is_absolute():
            path = self.vault_root / path
        try:
            rel = path.resolve().relative_to(self.vault_root.resolve()).as_posix()
        except ValueError:
            raise ValueError(f"{file_path} is not inside the vault {self.vault_root}") from None
        return rel, path

    # -- public API ----------------------------------------------------------

    async def index_vault(self) -> IndexingResult:
        """Bring the index up to date with the vault directory."""
        self._require_vault()
        started = time.monotonic()
        result = IndexingResult()

        async with get_vault_lock(self.vault_root):
            files = await asyncio.to_thread(self.scan_files)
            result.notes_scanned = len(files)
            previous = await asyncio.to_thread(self.store.get_note_hashes)

            current: dict[str, str] = {}
            # Bytes are kept only for new or changed files
            contents: dict[str, bytes] = {}
            for rel, path in files.items():
                try:
                    data = await asyncio.to_thread(path.read_bytes)
                except OSError as e:
                    self._record_error(result, rel, e)
                    # Unreadable is not deleted: keep whatever is indexed
                    current[rel] = previous.get(rel, "")
                    continue
                current[rel] = compute_content_hash(data)
                if previous.get(rel) != current[rel]:
                    contents[rel] = data

            added, modified, deleted = find_changes(current, previous)
            logger.info(
                "Scanned %d files in %s: %d new, %d modified, %d deleted",
                len(files), self.vault_root, len(added), len(modified), len(deleted),
            )

            pending = []
            for rel in added + modified:
                if rel not in contents:
                    continue
                prepared = self._prepare(rel, files[rel], contents[rel], current[rel], rel in added, result)
                if prepared is not None:
                    pending.append(prepared)

            await self._embed_and_persist(pending, result, self.batch_size)

            if deleted:
                result.notes_removed = await asyncio.to_thread(self.store.delete_notes, deleted)

        result.duration = time.monotonic() - started
        logger.info(
            "Indexing complete: %d added, %d updated, %d removed, %d chunks, %d errors in %.2fs",
            result.notes_added, result.notes_updated, result.notes_removed,
            result.chunks_created, len(result.errors), result.duration,
        )
        return result

    async def index_note(self, file_path: Path | str) -> IndexingResult:
        """Index a single note. A file that no longer exists is removed."""
        self._require_vault()
        started = time.monotonic()
        result = IndexingResult()
        rel, path = self._relative_path(file_path)

        async with get_vault_lock(self.vault_root):
            if not path.is_file():
                removed = await asyncio.to_thread(self.store.delete_notes, [rel])
                result.notes_removed = removed
            elif self.is_indexable(rel):
                result.notes_scanned = 1
                await self._index_one(rel, path, result)

        result.duration = time.monotonic() - started
        return result

    async def remove_note(self, file_path: Path | str) -> bool:
        """Drop a note and its chunks from the index."""
        rel, _ = self._relative_path(file_path)
        async with get_vault_lock(self.vault_root):
            removed = await asyncio.to_thread(self.store.delete_note, rel)
        if removed:
            logger.info("Removed %s from index", rel)
        return removed

    # -- pipeline ------------------------------------------------------------

    async def _index_one(self, rel: str, path: Path, result: IndexingResult) -> None:
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            self._record_error(result, rel, e)
            return

        digest = compute_content_hash(data)
        previous = await asyncio.to_thread(self.store.get_note_hashes)
        if previous.get(rel) == digest:
            return

        prepared = self._prepare(rel, path, data, digest, rel not in previous, result)
        if prepared is not None:
            await self._embed_and_persist([prepared], result, max(1, len(prepared.chunks)))

    def _prepare(
        self,
        rel: str,
        path: Path,
        data: bytes,
        digest: str,
        is_new: bool,
        result: IndexingResult,
    ) -> _PendingNote | None:
        try:
            content = data.decode("utf-8-sig")
            title = extract_title(content, rel)
            chunks = self.chunker.chunk_note(content, rel, title)
            mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except (OSError, ValueError) as e:
            self._record_error(result, rel, e)
            return None

        note = VaultNote(file_path=rel, content_hash=digest, title=title, file_modified_at=mtime)
        return _PendingNote(note=note, is_new=is_new, chunks=chunks)

    async def _embed_and_persist(
        self,
        pending: list[_PendingNote],
        result: IndexingResult,
        batch_size: int,
    ) -> None:
        # Empty notes still get a replace so stale chunks are cleared
        for item in pending:
            if not item.chunks:
                await self._persist(item, result)

        work = [(item, i) for item in pending for i in range(len(item.chunks))]
        failed: set[int] = set()

        for start in range(0, len(work), batch_size):
            batch = [(item, i) for item, i in work[start:start + batch_size] if id(item) not in failed]
            if not batch:
                continue
            affected = list({id(item): item for item, _ in batch}.values())

            try:
                vectors = await self.embeddings.get_embeddings([item.chunks[i].text for item, i in batch])
            except EmbeddingConfigError:
                raise
            except EmbeddingError as e:
                logger.exception("Embedding batch of %d chunks failed", len(batch))
                for item in affected:
                    failed.add(id(item))
                    result.errors.append(f"{item.note.file_path}: {e}")
                continue

            for (item, i), vector in zip(batch, vectors):
                item.vectors[i] = vector
            for item in affected:
                if item.complete:
                    await self._persist(item, result)

    async def _persist(self, item: _PendingNote, result: IndexingResult) -> None:
        """Write the note record, then swap in its complete chunk set."""
        rel = item.note.file_path
        try:
            note_id = await asyncio.to_thread(self.store.upsert_note, item.note)
            chunks = [
                NoteChunk(
                    note_id=note_id,
                    chunk_index=info.chunk_index,
                    chunk_text=info.text,
                    start_line=info.start_line,
                    end_line=info.end_line,
                    embedding=vector,
                )
                for info, vector in zip(item.chunks, item.vectors)
            ]
            await asyncio.to_thread(self.store.replace_chunks_for_note, note_id, chunks)
        except Exception as e:
            logger.exception("Failed to store %s", rel)
            result.errors.append(f"{rel}: {e}")
            # Forget the note so the next run retries it from scratch
            await self._forget(rel)
            return

        if item.is_new:
            result.notes_added += 1
        else:
            result.notes_updated += 1
        result.chunks_created += len(item.chunks)

    async def _forget(self, rel: str) -> None:
        try:
            await asyncio.to_thread(self.store.delete_note, rel)
        except Exception:
            logger.exception("Could not reset index entry for %s", rel)

    @staticmethod
    def _record_error(result: IndexingResult, rel: str, error: Exception) -> None:
        logger.warning("Skipping %s: %s", rel, error)
        result.errors.append(f"{rel}: {error}")
