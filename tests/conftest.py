"""Shared test fixtures for notevault."""

from __future__ import annotations

import json
import math
import re
from pathlib import Path
from typing import Sequence

import pytest

from notevault.vault.embeddings import EmbeddingError
from notevault.vault.store import InMemoryVectorIndex

# Words that should land close together in the fake embedding space
CONCEPTS = {
    "dog": "animal",
    "dogs": "animal",
    "pet": "animal",
    "pets": "animal",
    "cat": "animal",
    "book": "reading",
    "books": "reading",
    "read": "reading",
    "novel": "reading",
}

TOKEN_RE = re.compile(r"[a-z0-9]+")


def _bucket(token: str, dim: int) -> int:
    return sum((i + 1) * ord(c) for i, c in enumerate(token)) % dim


def fake_vector(text: str, dim: int = 256) -> list[float]:
    """Deterministic bag-of-concepts vector, L2 normalized."""
    vector = [0.0] * dim
    for token in TOKEN_RE.findall(text.lower()):
        vector[_bucket(CONCEPTS.get(token, token), dim)] += 1.0
    norm = math.sqrt(sum(v * v for v in vector))
    return [v / norm for v in vector] if norm else vector


class FakeEmbeddingClient:
    """Stands in for EmbeddingClient; records every batch it is asked to embed."""

    def __init__(self, dim: int = 256, fail_on: str | None = None) -> None:
        self.dim = dim
        self.fail_on = fail_on
        self.calls: list[list[str]] = []
        self.closed = False

    async def get_embeddings(self, texts: Sequence[str]) -> list[list[float]]:
        texts = list(texts)
        if not texts:
            return []
        self.calls.append(texts)
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise EmbeddingError("provider rejected the batch")
        return [fake_vector(t, self.dim) for t in texts]

    async def get_embedding(self, text: str) -> list[float]:
        return (await self.get_embeddings([text]))[0]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real ~/.notevault and any real API keys."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(
        "notevault.config.get_user_settings_path",
        lambda: home / ".notevault" / "settings.json",
    )
    monkeypatch.delenv("NOTEVAULT_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture
def fake_embeddings() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def memory_store() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """A small vault of daily notes."""
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "2026-01-18.md").write_text("# Journal\nWalked the dog.\n", encoding="utf-8")
    (vault / "2026-01-19.md").write_text("# Journal\nRead a book.\n", encoding="utf-8")
    return vault


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary notevault project structure."""
    notevault_dir = tmp_path / ".notevault"
    notevault_dir.mkdir()
    (notevault_dir / "settings.json").write_text(json.dumps({
        "vault_name": "My Vault",
        "min_score": 0.1,
    }))
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "2026-01-18.md").write_text("# Journal\nWalked the dog.\n", encoding="utf-8")
    (vault / "2026-01-19.md").write_text("# Journal\nRead a book.\n", encoding="utf-8")
    return tmp_path
