"""Related-note suggestions by token overlap between note fields."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Sequence

from notebridge.config import config
from notebridge.exceptions import NoteNotFoundError
from notebridge.models.schema import (
    Draft,
    Note,
    RelationBundle,
    RelationKind,
    RelationScore,
)
from notebridge.observability import traced
from notebridge.services.tokenizer import token_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _IndexedNote:
    """Token sets of one note's similarity fields."""

    id: str
    title: str
    fields: Dict[str, FrozenSet[str]]


def overlap(a: AbstractSet[str], b: AbstractSet[str]) -> int:
    """Count tokens present in both sets, iterating the smaller one."""
    small, large = (a, b) if len(a) <= len(b) else (b, a)
    return sum(1 for t in small if t in large)


def _field_sets(problem: str, solution: str, limit: str) -> Dict[str, FrozenSet[str]]:
    return {
        "problem": token_set(problem),
        "solution": token_set(solution),
        "limit": token_set(limit),
    }


def _index_notes(notes: Iterable[Note]) -> Dict[str, _IndexedNote]:
    index: Dict[str, _IndexedNote] = {}
    for note in notes:
        index[note.id] = _IndexedNote(
            id=note.id,
            title=note.title,
            fields=_field_sets(note.problem, note.solution, note.limit),
        )
    return index


def _rank(
    target: Dict[str, FrozenSet[str]],
    candidates: Sequence[_IndexedNote],
    limit: int,
) -> RelationBundle:
    """Score every candidate for each relation kind and keep the top ``limit``."""
    bundle: RelationBundle = {}
    for kind in RelationKind:
        target_field, candidate_field = kind.field_pair
        scored: List[RelationScore] = []
        for cand in candidates:
            score = overlap(target[target_field], cand.fields[candidate_field])
            if score > 0:
                scored.append(RelationScore(id=cand.id, title=cand.title, score=score))
        scored.sort(key=lambda r: (-r.score, r.title))
        bundle[kind.value] = scored[: max(limit, 0)]
    return bundle


def suggest_for_note_id(
    notes: Sequence[Note], note_id: str, limit: Optional[int] = None
) -> Optional[RelationBundle]:
    """Compute the five relation lists for a stored note.

    Args:
        notes: The full corpus snapshot.
        note_id: ID of the target note; it is never suggested to itself.
        limit: Maximum entries per relation list. Defaults to config.suggest_limit.

    Returns:
        The relation bundle, or None when ``note_id`` is not in ``notes``.
        A found note with no matches yields empty lists, not None.
    """
    if limit is None:
        limit = config.suggest_limit
    index = _index_notes(notes)
    current = index.get(note_id)
    if current is None:
        logger.debug(f"suggest_for_note_id: note {note_id} not in corpus")
        return None
    others = [n for n in index.values() if n.id != note_id]
    return _rank(current.fields, others, limit)


@traced("require_suggestions_for_note_id")
def require_suggestions_for_note_id(
    notes: Sequence[Note], note_id: str, limit: Optional[int] = None
) -> RelationBundle:
    """Like suggest_for_note_id, but raise NoteNotFoundError for unknown ids."""
    bundle = suggest_for_note_id(notes, note_id, limit)
    if bundle is None:
        raise NoteNotFoundError(note_id)
    return bundle


@traced("suggest_for_draft")
def suggest_for_draft(
    notes: Sequence[Note],
    draft: Draft,
    limit: Optional[int] = None,
    exclude_id: Optional[str] = None,
) -> RelationBundle:
    """Compute the five relation lists for unsaved draft text.

    Args:
        notes: The full corpus snapshot.
        draft: Problem/solution/limit text being edited; any may be empty.
        limit: Maximum entries per relation list. Defaults to config.suggest_limit.
        exclude_id: ID of the note being edited, left out of the candidates.
    """
    if limit is None:
        limit = config.suggest_limit
    index = _index_notes(notes)
    target = _field_sets(draft.problem, draft.solution, draft.limit)
    others = [n for n in index.values() if n.id != exclude_id]
    return _rank(target, others, limit)
