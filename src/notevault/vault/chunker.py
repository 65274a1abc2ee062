"""Section-aware markdown chunking for vault notes.

Splits a note into size-bounded chunks along markdown headings. The YAML
frontmatter is never split: its date and tags are folded into a short note
prefix that is repeated at the top of every chunk, so each embedded chunk
knows which note (and which day) it came from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any, Iterator

import yaml

from notevault.vault.schema import ChunkInfo


# Approximate: 1 token ~= 4 characters of English text
CHARS_PER_TOKEN = 4
DEFAULT_TARGET_TOKENS = 500
DEFAULT_OVERLAP_TOKENS = 50

HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass
class _Section:
    header: str | None
    start_line: int
    end_line: int
    lines: list[str] = field(default_factory=list)

    @property
    def first_body_line(self) -> int:
        return self.start_line + 1 if self.header else self.start_line

    def text(self) -> str:
        parts = [f"{self.header}\n"] if self.header else []
        parts.extend(f"{line}\n" for line in self.lines)
        return "".join(parts)


def _split_frontmatter(lines: list[str]) -> tuple[str | None, int]:
    """Locate a leading ``---`` block.

    Returns (raw_yaml, first_body_line). Without a closing delimiter the
    whole file is body.
    """
    if not lines or lines[0].strip() != "---":
        return None, 0
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[1:i]).strip(), i + 1
    return None, 0


def _parse_yaml(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = yaml.safe_load(raw)
    except (yaml.YAMLError, ValueError, TypeError):
        # Date-shaped scalars that are not real dates raise ValueError
        return {}
    return data if isinstance(data, dict) else {}


def extract_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter and body from markdown content.

    Returns (frontmatter_dict, body_text).
    """
    lines = content.split("\n")
    raw, body_start = _split_frontmatter(lines)
    return _parse_yaml(raw), "\n".join(lines[body_start:])


def extract_title(content: str, file_path: str) -> str:
    """Resolve a note title: frontmatter ``title``, then first H1, then filename."""
    frontmatter, body = extract_frontmatter(content)
    title = frontmatter.get("title")
    if title is not None and str(title).strip():
        return str(title).strip()

    h1 = H1_RE.search(body)
    if h1:
        return h1.group(1).strip()

    return PurePosixPath(file_path).stem


def _frontmatter_date(frontmatter: dict[str, Any]) -> str | None:
    value = frontmatter.get("date")
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        match = ISO_DATE_RE.match(value.strip())
        if match:
            return match.group(0)
    return None


def _frontmatter_tags(frontmatter: dict[str, Any]) -> str | None:
    tags = frontmatter.get("tags")
    if isinstance(tags, (list, tuple)):
        cleaned = [str(t).strip() for t in tags if str(t).strip()]
        return ", ".join(cleaned) if cleaned else None
    if isinstance(tags, str) and tags.strip():
        return tags.strip().strip("[]")
    return None


def build_note_prefix(file_path: str, title: str | None, frontmatter: dict[str, Any]) -> str:
    """Build the short header repeated at the top of every chunk."""
    stem = PurePosixPath(file_path).stem
    if title and title.strip() and title.strip().lower() != stem.lower():
        lines = [f"[Note: {title.strip()} ({stem})]"]
    else:
        lines = [f"[Note: {stem}]"]

    note_date = _frontmatter_date(frontmatter)
    if note_date:
        lines.append(f"Date: {note_date}")

    tags = _frontmatter_tags(frontmatter)
    if tags:
        lines.append(f"Tags: {tags}")

    return "\n".join(lines) + "\n\n"


def _parse_sections(lines: list[str], start_line: int) -> list[_Section]:
    """Group body lines into sections anchored at markdown headers."""
    sections: list[_Section] = []
    current: _Section | None = None

    for i in range(start_line, len(lines)):
        line = lines[i]
        if HEADER_RE.match(line):
            if current is not None:
                sections.append(current)
            current = _Section(header=line, start_line=i, end_line=i)
            continue

        if current is None:
            # Content before any header
            current = _Section(header=None, start_line=i, end_line=i)
        current.lines.append(line)
        current.end_line = i

    if current is not None:
        sections.append(current)
    return sections


def get_overlap_text(text: str, overlap_chars: int) -> str:
    """Return the tail of ``text`` to repeat at the start of the next chunk.

    Snaps to the last paragraph break near the tail, then to the last
    sentence end, and otherwise cuts at exactly ``overlap_chars``.
    """
    if overlap_chars <= 0:
        return ""
    text = text.rstrip()
    if not text or len(text) <= overlap_chars:
        return text

    search_start = max(0, len(text) - overlap_chars - 100)
    last_paragraph = text.rfind("\n\n", search_start)
    if last_paragraph > search_start:
        return text[last_paragraph + 2:]

    last_sentence = text.rfind(". ", max(0, len(text) - overlap_chars - 50))
    if last_sentence > len(text) - overlap_chars - 50:
        return text[last_sentence + 2:]

    return text[-overlap_chars:]


class NoteChunker:
    """Split note text into ordered, overlapping, size-bounded chunks."""

    def __init__(
        self,
        target_tokens: int = DEFAULT_TARGET_TOKENS,
        overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
    ) -> None:
        if target_tokens < 1:
            raise ValueError("target_tokens must be a positive integer")
        self.target_chars = target_tokens * CHARS_PER_TOKEN
        self.overlap_chars = max(0, overlap_tokens) * CHARS_PER_TOKEN

    def chunk_note(self, content: str, file_path: str, title: str | None = None) -> list[ChunkInfo]:
        """Chunk one note. Whitespace-only content yields no chunks."""
        if not content or not content.strip():
            return []

        lines = content.split("\n")
        raw_frontmatter, body_start = _split_frontmatter(lines)
        prefix = build_note_prefix(file_path, title, _parse_yaml(raw_frontmatter))
        sections = _parse_sections(lines, body_start)

        # Keep at least half the budget for body text when the prefix is long
        effective = max(self.target_chars - len(prefix), self.target_chars // 2, 1)

        return [
            ChunkInfo(text=text, chunk_index=i, start_line=start, end_line=end)
            for i, (text, start, end) in enumerate(self._chunk_sections(sections, prefix, effective))
        ]

    def _chunk_sections(
        self,
        sections: list[_Section],
        prefix: str,
        effective: int,
    ) -> Iterator[tuple[str, int, int]]:
        current = ""
        current_start = 0
        current_end = 0
        # Start line of a flushed whitespace-only buffer, absorbed by the next chunk
        carry_start: int | None = None

        def flush() -> tuple[str, int, int] | None:
            nonlocal carry_start
            body = current.strip()
            if not body:
                if carry_start is None or current_start < carry_start:
                    carry_start = current_start
                return None
            start = current_start
            if carry_start is not None:
                start = min(start, carry_start)
                carry_start = None
            return prefix + body, start, current_end

        for section in sections:
            section_text = section.text()

            if len(current) + len(section_text) <= effective:
                if not current:
                    current_start = section.start_line
                current += section_text
                current_end = section.end_line

            elif len(section_text) > effective:
                if current:
                    chunk = flush()
                    if chunk:
                        yield chunk
                    current = ""
                first = True
                for text, start, end in self._split_large_section(section, prefix, effective):
                    if first and carry_start is not None:
                        start = min(start, carry_start)
                        carry_start = None
                    first = False
                    yield text, start, end

            else:
                overlap = ""
                if current:
                    chunk = flush()
                    if chunk:
                        yield chunk
                        overlap = get_overlap_text(current, self.overlap_chars)
                seed = f"{overlap}\n\n" if overlap.strip() else ""
                if len(seed) + len(section_text) > effective:
                    seed = ""
                current = seed + section_text
                current_start = section.start_line
                current_end = section.end_line

        if current:
            chunk = flush()
            if chunk:
                yield chunk

    def _split_large_section(
        self,
        section: _Section,
        prefix: str,
        effective: int,
    ) -> Iterator[tuple[str, int, int]]:
        """Split one oversized section line by line, seeding each piece with overlap."""
        header = f"{section.header}\n" if section.header else ""
        continued = f"{section.header} (continued)\n" if section.header else ""

        buffer = header
        has_body = False
        start_line = section.start_line

        for offset, line in enumerate(section.lines):
            line_no = section.first_body_line + offset
            if has_body and len(buffer) + len(line) + 1 > effective:
                body = buffer.strip()
                if body:
                    yield prefix + body, start_line, line_no - 1
                    start_line = line_no

                overlap = get_overlap_text(buffer, self.overlap_chars)
                seed = f"{overlap}\n" if overlap.strip() else ""
                if len(continued) + len(seed) + len(line) + 1 > effective:
                    seed = ""
                buffer = continued + seed
                has_body = False

            buffer += f"{line}\n"
            has_body = True

        body = buffer.strip()
        if body:
            yield prefix + body, start_line, section.end_line
