"""Relation graph for the notes browser.

Edges come from two sources: the similarity engine's "after" relation
(a note's limit overlapping another note's problem), and, for the idea
subject only, shared tags.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from notebridge.config import config
from notebridge.models.schema import (
    UNTITLED,
    EdgeType,
    Graph,
    GraphEdge,
    GraphNode,
    Note,
    RelationKind,
)
from notebridge.observability import traced
from notebridge.services.similarity_service import overlap, suggest_for_note_id

logger = logging.getLogger(__name__)

# Subject whose notes are also connected by shared tags
TAG_EDGE_SUBJECT = "idea"

_EdgeKey = Tuple[str, str, EdgeType]


class _EdgeSet:
    """Edges keyed by (source, target, type), keeping the heaviest duplicate."""

    def __init__(self, node_ids: set):
        self._node_ids = node_ids
        self._edges: Dict[_EdgeKey, GraphEdge] = {}

    def add(self, source: str, target: str, edge_type: EdgeType, weight: int) -> None:
        if source not in self._node_ids or target not in self._node_ids:
            return
        key = (source, target, edge_type)
        previous = self._edges.get(key)
        if previous is None or weight > previous.weight:
            self._edges[key] = GraphEdge(
                source=source, target=target, type=edge_type, weight=weight
            )

    def add_undirected(self, a: str, b: str, edge_type: EdgeType, weight: int) -> None:
        source, target = (a, b) if a < b else (b, a)
        self.add(source, target, edge_type, weight)

    def values(self) -> List[GraphEdge]:
        return list(self._edges.values())


def _tag_set(note: Note) -> frozenset:
    return frozenset(t.strip().lower() for t in note.tags if t.strip())


@traced("build_graph")
def build_graph(
    notes: Sequence[Note],
    subject: Optional[str] = None,
    limit: Optional[int] = None,
) -> Graph:
    """Build nodes and edges for the notes of one subject (or all notes).

    Args:
        notes: The full corpus snapshot.
        subject: Case-insensitive subject filter; blank means every note.
        limit: Per-note cap on "after" edges. Defaults to config.suggest_limit.
    """
    if limit is None:
        limit = config.suggest_limit
    subject_key = (subject or "").strip().lower()
    if subject_key:
        notes = [n for n in notes if n.subject.lower() == subject_key]

    nodes = [GraphNode(id=n.id, title=n.title or UNTITLED) for n in notes]
    edges = _EdgeSet({n.id for n in notes})

    for note in notes:
        bundle = suggest_for_note_id(notes, note.id, limit) or {}
        for rel in bundle.get(RelationKind.SOLUTION_TO_PROBLEM.value, []):
            edges.add(note.id, rel.id, EdgeType.AFTER, rel.score)

    if subject_key == TAG_EDGE_SUBJECT:
        tagged = [(n.id, _tag_set(n)) for n in notes]
        for i, (a_id, a_tags) in enumerate(tagged):
            for b_id, b_tags in tagged[i + 1:]:
                if not a_tags or not b_tags:
                    continue
                shared = overlap(a_tags, b_tags)
                if shared > 0:
                    edges.add_undirected(a_id, b_id, EdgeType.TAG, shared)

    graph = Graph(subject=subject_key or None, nodes=nodes, edges=edges.values())
    logger.debug(
        f"build_graph: subject={graph.subject} nodes={len(graph.nodes)} "
        f"edges={len(graph.edges)}"
    )
    return graph
