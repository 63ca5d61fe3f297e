"""Phrase search across note fields, ranked by weighted occurrence counts."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from notebridge.config import config
from notebridge.models.schema import Note, SearchHit, parse_timestamp
from notebridge.observability import traced

logger = logging.getLogger(__name__)

_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Lower-case, collapse whitespace runs to one space, and trim."""
    return _WHITESPACE_PATTERN.sub(" ", (text or "").lower()).strip()


def count_occurrences(haystack: str, needle: str) -> int:
    """Count non-overlapping occurrences of ``needle``, scanning left to right.

    Example:
        >>> count_occurrences("aaaa", "aa")
        2
    """
    if not needle:
        return 0
    count = 0
    idx = haystack.find(needle)
    while idx != -1:
        count += 1
        idx = haystack.find(needle, idx + len(needle))
    return count


def _searchable_fields(note: Note) -> Dict[str, str]:
    return {
        "title": note.title,
        "subject": note.subject,
        "problem": note.problem,
        "solution": note.solution,
        "limit": note.limit,
        "details": note.details,
        "tags": " ".join(note.tags),
    }


def score_note(
    note: Note, phrase: str, weights: Mapping[str, int]
) -> Tuple[int, int]:
    """Return (weighted score, raw count) of ``phrase`` in ``note``.

    ``phrase`` must already be normalized.
    """
    score = 0
    count = 0
    for name, text in _searchable_fields(note).items():
        hits = count_occurrences(normalize_text(text), phrase)
        count += hits
        score += weights.get(name, 0) * hits
    return score, count


@traced("search_notes")
def search_notes(
    notes: Sequence[Note],
    query: Optional[str],
    limit: Optional[int] = None,
    weights: Optional[Mapping[str, int]] = None,
) -> List[SearchHit]:
    """Rank notes by how often the query phrase appears in their fields.

    The query is matched as one literal phrase, case- and
    whitespace-insensitively, in title, subject, problem, solution, limit,
    details and space-joined tags.

    Args:
        notes: The full corpus snapshot.
        query: Search phrase; blank queries return [].
        limit: Maximum results. Defaults to config.search_limit.
        weights: Per-field weights. Defaults to config.search_weights.

    Returns:
        Hits with score > 0, by descending score then most recently updated.
    """
    phrase = normalize_text(query)
    if not phrase:
        return []
    if limit is None:
        limit = config.search_limit
    if weights is None:
        weights = config.search_weights

    hits: List[SearchHit] = []
    for note in notes:
        score, count = score_note(note, phrase, weights)
        if score > 0:
            hits.append(
                SearchHit(
                    id=note.id,
                    title=note.title,
                    updated_at=note.updated_at,
                    score=score,
                    count=count,
                )
            )

    # Two stable passes: recency first, then score
    hits.sort(key=lambda h: parse_timestamp(h.updated_at), reverse=True)
    hits.sort(key=lambda h: h.score, reverse=True)
    logger.debug(f"search_notes: {len(hits)} hits for {phrase[:30]!r}")
    return hits[: max(limit, 0)]
