"""notevault CLI: main entry point.

Commands:
  init      Initialize a new notevault project
  index     Index the vault (incremental), or a single note
  search    Search the vault
  stats     Show index statistics
  config    View and update project settings
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="notevault",
        description="notevault: semantic search for markdown note vaults",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize a new notevault project")
    init_parser.add_argument("path", nargs="?", default=".", help="Project directory")
    init_parser.add_argument("--vault", help="Vault directory (default: <project>/vault)")

    # index
    index_parser = subparsers.add_parser("index", help="Index the vault")
    index_parser.add_argument("note", nargs="?", help="Index only this note")
    index_parser.add_argument("--remove", action="store_true", help="Remove the note from the index")

    # search
    search_parser = subparsers.add_parser("search", help="Search the vault")
    search_parser.add_argument("query", help="Natural language query")
    search_parser.add_argument("-k", "--top-k", type=int, help="Maximum results")
    search_parser.add_argument("--min-score", type=float, help="Minimum similarity score")
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    search_parser.add_argument(
        "--debug", action="store_true",
        help="Show the query embedding and raw nearest chunks, ignoring min-score",
    )

    # stats
    subparsers.add_parser("stats", help="Show index statistics")

    # config
    config_parser = subparsers.add_parser("config", help="View and update project settings")
    config_parser.add_argument(
        "action", choices=["show", "get", "set"], help="Action to perform"
    )
    config_parser.add_argument("key", nargs="?", help="Setting key (for get/set)")
    config_parser.add_argument("value", nargs="?", help="Setting value (for set)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "init":
            return cmd_init(args)
        elif args.command == "index":
            return cmd_index(args)
        elif args.command == "search":
            return cmd_search(args)
        elif args.command == "stats":
            return cmd_stats(args)
        elif args.command == "config":
            return cmd_config(args)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _require_project() -> Path | None:
    from notevault.utils.paths import find_project_root

    project_root = find_project_root()
    if project_root is None:
        print("No notevault project found. Run 'notevault init' first.", file=sys.stderr)
    return project_root


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new notevault project."""
    from notevault.config import VaultSettings, save_settings
    from notevault.utils.paths import get_notevault_dir, get_project_settings_path, resolve_vault_dir

    project_dir = Path(args.path).resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    get_notevault_dir(project_dir)

    settings_path = get_project_settings_path(project_dir)
    if not settings_path.exists():
        settings = VaultSettings()
        if args.vault:
            settings.vault_path = args.vault
        save_settings(settings, settings_path)
        resolve_vault_dir(project_dir, settings.vault_path).mkdir(parents=True, exist_ok=True)

    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(".notevault/index.lance/\n.env\n__pycache__/\n", encoding="utf-8")

    print(f"Initialized notevault project at {project_dir}")
    return 0


def cmd_index(args: argparse.Namespace) -> int:
    """Index the vault, or one note."""
    from notevault.services import open_services

    project_root = _require_project()
    if project_root is None:
        return 1

    async def run() -> Any:
        async with open_services(project_root) as services:
            if args.note and args.remove:
                return await services.indexer.remove_note(args.note)
            if args.note:
                return await services.indexer.index_note(args.note)
            return await services.indexer.index_vault()

    if args.remove and not args.note:
        print("Usage: notevault index <note> --remove", file=sys.stderr)
        return 1

    result = asyncio.run(run())
    if isinstance(result, bool):
        print(f"Removed {args.note}" if result else f"{args.note} was not indexed")
        return 0

    print(
        f"Scanned {result.notes_scanned} notes: {result.notes_added} added, "
        f"{result.notes_updated} updated, {result.notes_removed} removed, "
        f"{result.chunks_created} chunks created ({result.duration:.1f}s)"
    )
    for error in result.errors:
        print(f"  error: {error}", file=sys.stderr)
    return 0 if result.success else 1


def cmd_search(args: argparse.Namespace) -> int:
    """Search the vault."""
    from notevault.services import open_services
    from notevault.vault.citations import citations_from_results, format_citations

    project_root = _require_project()
    if project_root is None:
        return 1

    if args.debug:
        async def run_debug() -> Any:
            async with open_services(project_root) as services:
                return await services.search.debug_search(args.query)

        report = asyncio.run(run_debug())
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(report.format())
        return 0 if report.error is None else 1

    async def run() -> tuple[list, Any]:
        async with open_services(project_root) as services:
            results = await services.search.search(
                args.query, top_k=args.top_k, min_score=args.min_score,
            )
            return results, services.settings

    results, settings = asyncio.run(run())

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return 0

    if not results:
        print("No matching notes.")
        return 0

    for i, result in enumerate(results, start=1):
        label = result.title or result.file_path
        print(f"{i}. {label} ({result.file_path}) score={result.score:.3f}")
        snippet = " ".join(result.chunk_text.split())
        print(f"   {snippet[:200]}")

    citations = format_citations(
        citations_from_results(results), settings.vault_name, settings.max_citations,
    )
    if citations:
        print(citations, end="")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show index statistics."""
    from notevault.services import open_services

    project_root = _require_project()
    if project_root is None:
        return 1

    async def run() -> Any:
        async with open_services(project_root) as services:
            return await services.search.get_stats()

    stats = asyncio.run(run())
    print(json.dumps(stats.to_dict(), indent=2))
    return 0


def _parse_config_value(key: str, raw: str) -> Any:
    """Coerce a command-line string to the type of the setting's default."""
    from notevault.config import DEFAULT_SETTINGS

    default = DEFAULT_SETTINGS[key]
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise ValueError(f"{key} must be true or false")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{key} must be an integer") from None
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"{key} must be a number") from None
    if isinstance(default, list):
        return [part.strip() for part in raw.split(",") if part.strip()]
    return raw


def cmd_config(args: argparse.Namespace) -> int:
    """View and update project settings."""
    from notevault.config import (
        DEFAULT_SETTINGS,
        load_json_file,
        load_settings,
        validate_settings,
    )
    from notevault.utils.paths import get_project_settings_path

    project_root = _require_project()
    if project_root is None:
        return 1

    action = args.action
    allowed = sorted(DEFAULT_SETTINGS)

    if action == "show":
        settings = load_settings(project_root)
        print(json.dumps(settings.to_dict(), indent=2))
        return 0

    if action in ("get", "set") and args.key and args.key not in DEFAULT_SETTINGS:
        print(
            f"Unknown key: {args.key}. Allowed keys: {', '.join(allowed)}",
            file=sys.stderr,
        )
        return 1

    if action == "get":
        if not args.key:
            print("Usage: notevault config get <key>", file=sys.stderr)
            return 1
        value = getattr(load_settings(project_root), args.key)
        print(json.dumps(value) if isinstance(value, (list, bool)) else value)
        return 0

    if action == "set":
        if not args.key or args.value is None:
            print("Usage: notevault config set <key> <value>", file=sys.stderr)
            return 1

        try:
            value = _parse_config_value(args.key, args.value)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1

        # Validate by building a settings object from merged data
        test_settings = load_settings(project_root)
        setattr(test_settings, args.key, value)
        errors = validate_settings(test_settings)
        if errors:
            for err in errors:
                print(f"Validation error: {err}", file=sys.stderr)
            return 1

        settings_path = get_project_settings_path(project_root)
        data = load_json_file(settings_path)
        data[args.key] = value
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        print(f"{args.key} = {json.dumps(value) if isinstance(value, (list, bool)) else value}")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
