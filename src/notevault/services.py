"""Wire settings, storage, embeddings, indexer and search for one project."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from notevault.config import VaultSettings, load_settings
from notevault.utils.paths import get_index_path, resolve_vault_dir
from notevault.vault.embeddings import EmbeddingClient
from notevault.vault.indexer import VaultIndexer
from notevault.vault.search import VaultSearchEngine
from notevault.vault.store import VectorIndex


@dataclass
class VaultServices:
    project_root: Path
    settings: VaultSettings
    vault_dir: Path
    store: VectorIndex
    embeddings: EmbeddingClient
    indexer: VaultIndexer
    search: VaultSearchEngine

    async def aclose(self) -> None:
        await self.embeddings.aclose()

    async def __aenter__(self) -> VaultServices:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def open_services(
    project_root: Path,
    settings: VaultSettings | None = None,
    store: VectorIndex | None = None,
    embeddings: EmbeddingClient | None = None,
) -> VaultServices:
    """Build the services for a project; store and client default to LanceDB and HTTP."""
    settings = settings or load_settings(project_root)
    if store is None:
        from notevault.vault.lance_store import LanceVectorIndex

        store = LanceVectorIndex(get_index_path(project_root))
    embeddings = embeddings or EmbeddingClient.from_settings(settings)
    vault_dir = resolve_vault_dir(project_root, settings.vault_path)

    return VaultServices(
        project_root=project_root,
        settings=settings,
        vault_dir=vault_dir,
        store=store,
        embeddings=embeddings,
        indexer=VaultIndexer.from_settings(settings, vault_dir, store, embeddings),
        search=VaultSearchEngine.from_settings(settings, store, embeddings),
    )
