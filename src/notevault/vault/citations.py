"""Render search results as Obsidian links for inclusion in answers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import PurePosixPath
from typing import Iterable, Sequence
from urllib.parse import quote_plus

from notevault.vault.schema import SearchResult

DEFAULT_MAX_CITATIONS = 5

_DATE_STEM_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class Citation:
    file_path: str
    title: str | None = None
    note_date: date | None = None

    @property
    def display_title(self) -> str:
        if self.note_date is not None:
            return self.note_date.isoformat()
        if self.title and self.title.strip():
            return self.title
        return PurePosixPath(self.file_path).stem


def note_date_from_path(file_path: str) -> date | None:
    """Daily notes are named ``YYYY-MM-DD.md``; anything else has no date."""
    match = _DATE_STEM_RE.match(PurePosixPath(file_path).stem)
    if not match:
        return None
    try:
        return date(*(int(g) for g in match.groups()))
    except ValueError:
        return None


def citations_from_results(results: Iterable[SearchResult]) -> list[Citation]:
    return [
        Citation(
            file_path=r.file_path,
            title=r.title,
            note_date=note_date_from_path(r.file_path),
        )
        for r in results
    ]


def build_vault_uri(vault_name: str, file_path: str) -> str:
    """Build an ``obsidian://open`` URI with form-encoded vault and path."""
    return f"obsidian://open?vault={quote_plus(vault_name)}&file={quote_plus(file_path)}"


def format_citations(
    citations: Sequence[Citation],
    vault_name: str,
    max_citations: int = DEFAULT_MAX_CITATIONS,
) -> str:
    """Render a ``Sources:`` block, or ``""`` when there is nothing to cite."""
    if not citations or not vault_name or not vault_name.strip():
        return ""

    limit = max(0, max_citations)
    lines = ["", "---", "Sources:"]
    for citation in citations[:limit]:
        uri = build_vault_uri(vault_name, citation.file_path)
        lines.append(f"- [[{citation.display_title}]]({uri})")

    if len(citations) > limit:
        lines.append(f"- ...and {len(citations) - limit} more")

    return "\n".join(lines) + "\n"
