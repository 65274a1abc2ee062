"""notevault configuration management.

Loads and merges settings from project and user-level settings.json files.
The embedding API key is read from the environment and never written to disk.
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notevault.utils.paths import (
    get_project_settings_path,
    get_user_settings_path,
)


API_KEY_ENV_VARS = ("NOTEVAULT_API_KEY", "OPENAI_API_KEY")

DEFAULT_EXCLUDE = ["**/templates/**", "**/.obsidian/**"]

DEFAULT_SETTINGS: dict[str, Any] = {
    "vault_path": "vault",
    "vault_name": "Vault",
    "include": "**/*.md",
    "exclude": DEFAULT_EXCLUDE,
    "chunk_target_tokens": 500,
    "chunk_overlap_tokens": 50,
    "embedding_model": "text-embedding-3-small",
    "embedding_base_url": "https://api.openai.com/v1",
    "embedding_batch_size": 100,
    "search_enabled": True,
    "min_score": 0.3,
    "top_k": 5,
    "max_citations": 5,
}


@dataclass
class VaultSettings:
    """Merged notevault settings."""

    vault_path: str = "vault"
    vault_name: str = "Vault"
    include: str = "**/*.md"
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    chunk_target_tokens: int = 500
    chunk_overlap_tokens: int = 50
    embedding_model: str = "text-embedding-3-small"
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_batch_size: int = 100
    search_enabled: bool = True
    min_score: float = 0.3
    top_k: int = 5
    max_citations: int = 5

    @property
    def api_key(self) -> str | None:
        for name in API_KEY_ENV_VARS:
            value = os.environ.get(name)
            if value:
                return value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vault_path": self.vault_path,
            "vault_name": self.vault_name,
            "include": self.include,
            "exclude": list(self.exclude),
            "chunk_target_tokens": self.chunk_target_tokens,
            "chunk_overlap_tokens": self.chunk_overlap_tokens,
            "embedding_model": self.embedding_model,
            "embedding_base_url": self.embedding_base_url,
            "embedding_batch_size": self.embedding_batch_size,
            "search_enabled": self.search_enabled,
            "min_score": self.min_score,
            "top_k": self.top_k,
            "max_citations": self.max_citations,
        }


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict.

    - Dicts are recursively merged
    - Lists are replaced (not appended)
    - Scalars are replaced
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(project_root: Path | None = None) -> VaultSettings:
    """Load and merge settings from user + project levels.

    Precedence: project settings override user settings override defaults.
    Unknown keys are ignored.
    """
    merged = copy.deepcopy(DEFAULT_SETTINGS)

    # User-level settings (lower precedence)
    user_settings = load_json_file(get_user_settings_path())
    if user_settings:
        merged = deep_merge(merged, user_settings)

    # Project-level settings (higher precedence)
    if project_root is not None:
        project_settings = load_json_file(get_project_settings_path(project_root))
        if project_settings:
            merged = deep_merge(merged, project_settings)

    return VaultSettings(**{key: merged[key] for key in DEFAULT_SETTINGS})


def save_settings(settings: VaultSettings, path: Path) -> None:
    """Save settings to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.to_dict(), indent=2) + "\n",
        encoding="utf-8",
    )


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def validate_settings(settings: VaultSettings) -> list[str]:
    """Validate settings, returning list of error messages (empty if valid)."""
    errors = []

    for key in ("vault_path", "include", "embedding_model", "embedding_base_url"):
        value = getattr(settings, key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{key} must be a non-empty string")

    if not isinstance(settings.vault_name, str):
        errors.append("vault_name must be a string")

    if not isinstance(settings.exclude, list) or not all(isinstance(p, str) for p in settings.exclude):
        errors.append("exclude must be a list of glob patterns")

    for key in ("chunk_target_tokens", "embedding_batch_size", "top_k", "max_citations"):
        if not _is_positive_int(getattr(settings, key)):
            errors.append(f"{key} must be a positive integer")

    overlap = settings.chunk_overlap_tokens
    if not isinstance(overlap, int) or isinstance(overlap, bool) or overlap < 0:
        errors.append("chunk_overlap_tokens must be a non-negative integer")
    elif _is_positive_int(settings.chunk_target_tokens) and overlap >= settings.chunk_target_tokens:
        errors.append("chunk_overlap_tokens must be smaller than chunk_target_tokens")

    if _is_positive_int(settings.embedding_batch_size) and settings.embedding_batch_size > 2048:
        errors.append("embedding_batch_size must not exceed 2048")

    if not isinstance(settings.search_enabled, bool):
        errors.append("search_enabled must be a boolean")

    min_score = settings.min_score
    if isinstance(min_score, bool) or not isinstance(min_score, (int, float)) or not (0.0 <= min_score <= 1.0):
        errors.append("min_score must be a float between 0.0 and 1.0")

    return errors
