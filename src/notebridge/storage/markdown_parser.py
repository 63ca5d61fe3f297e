"""Markdown parsing for note files.

A note file is markdown with optional YAML frontmatter::

    ---
    id: 20240101-cache
    subject: paper
    tags: [caching, lru]
    updated: 2024-01-02T10:00:00Z
    ---
    # Cache eviction

    ## Problem

    ...

    ## Solution

    ...

Body sections ``## Problem``, ``## Solution``, ``## Limit`` and
``## Details`` map onto note fields. Files written without frontmatter
may carry a ``## Metadata`` section of ``- Key: value`` bullets instead.
"""
import logging
from typing import Any, Dict, Optional

import frontmatter

from notebridge.models.schema import Note

logger = logging.getLogger(__name__)

# Section heading (lower-cased) -> note field
SECTION_FIELDS = {
    "problem": "problem",
    "solution": "solution",
    "limit": "limit",
    "details": "details",
}

METADATA_SECTION = "metadata"

# Frontmatter / metadata keys -> note field
METADATA_FIELDS = {
    "id": "id",
    "title": "title",
    "subject": "subject",
    "tags": "tags",
    "created": "created_at",
    "created_at": "created_at",
    "updated": "updated_at",
    "updated_at": "updated_at",
    "status": "status",
    "priority": "priority",
    "due": "due_date",
    "due_date": "due_date",
}


class MarkdownParser:
    """Parses note markdown files into Note values."""

    def parse_note(self, content: str, fallback_id: Optional[str] = None) -> Note:
        """Parse a note from markdown content.

        Args:
            content: Raw markdown, with or without ``---`` frontmatter.
            fallback_id: ID to use when the frontmatter has none
                (typically the file stem).

        Returns:
            A Note built through ``Note.from_record``.

        Raises:
            ValueError: If no note ID can be determined.
        """
        post = frontmatter.loads(content)
        title, sections, section_metadata = self._split_sections(post.content)

        record: Dict[str, Any] = {}
        props: Dict[str, Any] = {}
        # Frontmatter wins over the ## Metadata section
        for key, value in {**section_metadata, **post.metadata}.items():
            field_name = METADATA_FIELDS.get(str(key).strip().lower())
            if field_name:
                record[field_name] = value
            else:
                props[str(key)] = value

        note_id = record.get("id") or fallback_id
        if not note_id:
            raise ValueError("Note ID missing from frontmatter and no fallback given")
        record["id"] = note_id

        if not record.get("title") and title:
            record["title"] = title
        record.update(sections)
        if props:
            record["props"] = props
        return Note.from_record(record)

    @staticmethod
    def _split_sections(body: str):
        """Split a markdown body into (title, field sections, metadata bullets)."""
        title = ""
        sections: Dict[str, list] = {}
        metadata: Dict[str, str] = {}
        current: Optional[str] = None

        for line in body.split("\n"):
            stripped = line.strip()
            if stripped.startswith("# ") and not title and current is None:
                title = stripped[2:].strip()
                continue
            if stripped.startswith("## "):
                heading = stripped[3:].strip().lower()
                if heading in SECTION_FIELDS or heading == METADATA_SECTION:
                    current = heading
                    sections.setdefault(heading, [])
                else:
                    # Unknown sections end the current field
                    current = None
                continue
            if current == METADATA_SECTION:
                if stripped.startswith("- ") and ":" in stripped:
                    key, value = stripped[2:].split(":", 1)
                    metadata[key.strip()] = value.strip()
                continue
            if current is not None:
                sections[current].append(line)

        fields = {
            SECTION_FIELDS[name]: "\n".join(lines).strip()
            for name, lines in sections.items()
            if name != METADATA_SECTION
        }
        return title, fields, metadata
