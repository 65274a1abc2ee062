"""Tests for the notevault command line."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from conftest import FakeEmbeddingClient
from notevault import services
from notevault.cli import main
from notevault.vault.store import InMemoryVectorIndex


@pytest.fixture
def memory_services(monkeypatch: pytest.MonkeyPatch) -> InMemoryVectorIndex:
    """Route the CLI through one shared in-memory store and the fake embedder."""
    store = InMemoryVectorIndex()
    real_open = services.open_services

    def fake_open(project_root, settings=None, store_=None, embeddings=None):
        return real_open(project_root, settings=settings, store=store, embeddings=FakeEmbeddingClient())

    monkeypatch.setattr("notevault.services.open_services", fake_open)
    return store


class TestInit:
    def test_creates_project(self, tmp_path: Path, capsys):
        project = tmp_path / "proj"
        assert main(["init", str(project)]) == 0
        settings = json.loads((project / ".notevault" / "settings.json").read_text())
        assert settings["vault_path"] == "vault"
        assert (project / "vault").is_dir()
        assert "Initialized" in capsys.readouterr().out

    def test_custom_vault(self, tmp_path: Path):
        assert main(["init", str(tmp_path), "--vault", "notes"]) == 0
        settings = json.loads((tmp_path / ".notevault" / "settings.json").read_text())
        assert settings["vault_path"] == "notes"
        assert (tmp_path / "notes").is_dir()


class TestCommands:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_requires_project(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["stats"]) == 1
        assert "No notevault project found" in capsys.readouterr().err

    def test_index_search_stats(self, tmp_project: Path, monkeypatch, capsys, memory_services):
        monkeypatch.chdir(tmp_project)

        assert main(["index"]) == 0
        assert "2 added" in capsys.readouterr().out

        assert main(["search", "pet"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("1. Journal (2026-01-18.md)")
        assert "Sources:" in out
        assert "obsidian://open?vault=My+Vault&file=2026-01-18.md" in out

        assert main(["search", "pet", "--json"]) == 0
        results = json.loads(capsys.readouterr().out)
        assert results[0]["file_path"] == "2026-01-18.md"

        assert main(["stats"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats == {"indexed_notes": 2, "indexed_chunks": 2, "vector_search_available": True}

    def test_search_debug(self, tmp_project: Path, monkeypatch, capsys, memory_services):
        monkeypatch.chdir(tmp_project)
        assert main(["index"]) == 0
        capsys.readouterr()

        assert main(["search", "pet", "--debug"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("=== Debug search for: pet ===")
        assert "256 dimensions" in out
        assert "raw hits (no score threshold): 2" in out

        assert main(["search", "pet", "--debug", "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["hits"][0]["file_path"] == "2026-01-18.md"
        assert report["error"] is None

    def test_index_single_note_and_remove(self, tmp_project: Path, monkeypatch, capsys, memory_services):
        monkeypatch.chdir(tmp_project)

        assert main(["index", "2026-01-18.md"]) == 0
        assert set(memory_services.get_note_hashes()) == {"2026-01-18.md"}

        assert main(["index", "2026-01-18.md", "--remove"]) == 0
        assert "Removed 2026-01-18.md" in capsys.readouterr().out
        assert memory_services.count_notes() == 0

    def test_missing_vault_reports_error(self, tmp_project: Path, monkeypatch, capsys, memory_services):
        shutil.rmtree(tmp_project / "vault")
        monkeypatch.chdir(tmp_project)
        assert main(["index"]) == 1
        assert "Error: Vault directory not found" in capsys.readouterr().err


class TestConfig:
    def test_show(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "show"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["vault_name"] == "My Vault"

    def test_get(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "get", "top_k"]) == 0
        assert capsys.readouterr().out.strip() == "5"

    def test_set_typed_values(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "top_k", "8"]) == 0
        assert main(["config", "set", "search_enabled", "false"]) == 0
        assert main(["config", "set", "exclude", "drafts/**, **/templates/**"]) == 0

        data = json.loads((tmp_project / ".notevault" / "settings.json").read_text())
        assert data["top_k"] == 8
        assert data["search_enabled"] is False
        assert data["exclude"] == ["drafts/**", "**/templates/**"]
        assert data["vault_name"] == "My Vault"

    def test_set_invalid(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "top_k", "many"]) == 1
        assert main(["config", "set", "min_score", "2"]) == 1
        assert "Validation error" in capsys.readouterr().err

    def test_unknown_key(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "get", "colour"]) == 1
        assert "Unknown key" in capsys.readouterr().err
