"""Project path helpers for notevault."""

from __future__ import annotations

from pathlib import Path

NOTEVAULT_DIR = ".notevault"


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start directory to find project root.

    Project root is identified by the presence of a .notevault/ directory.
    """
    current = (start or Path.cwd()).resolve()
    for directory in [current, *current.parents]:
        if (directory / NOTEVAULT_DIR).is_dir():
            return directory
    return None


def get_project_root(start: Path | None = None) -> Path:
    """Get project root, raising if not found."""
    root = find_project_root(start)
    if root is None:
        raise FileNotFoundError(
            "No notevault project found. Run 'notevault init' to create one."
        )
    return root


def get_notevault_dir(project_root: Path) -> Path:
    """Get .notevault/ directory, creating if needed."""
    d = project_root / NOTEVAULT_DIR
    d.mkdir(exist_ok=True)
    return d


def get_index_path(project_root: Path) -> Path:
    """Get the LanceDB index directory path."""
    return get_notevault_dir(project_root) / "index.lance"


def resolve_vault_dir(project_root: Path, vault_path: str) -> Path:
    """Resolve the configured vault path; relative paths hang off the project root."""
    path = Path(vault_path).expanduser()
    if not path.is_absolute():
        path = project_root / path
    return path


def get_user_settings_path() -> Path:
    """Get user-level settings.json path."""
    return Path.home() / NOTEVAULT_DIR / "settings.json"


def get_project_settings_path(project_root: Path) -> Path:
    """Get project-level settings.json path."""
    return project_root / NOTEVAULT_DIR / "settings.json"
