"""Data models for notebridge."""

import datetime
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Characters that end the first sentence of a problem statement
_TITLE_BREAK_PATTERN = re.compile(r"[\n.!?]")

MAX_DERIVED_TITLE_LENGTH = 60
UNTITLED = "Untitled"


def coerce_text(value: Any) -> str:
    """Coerce a loosely-typed field value into a string ('' for None)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


# Ordering key for missing or unparseable timestamps: older than any real one
OLDEST_TIMESTAMP = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def parse_timestamp(value: Optional[str]) -> datetime.datetime:
    """Parse an ISO 8601 timestamp for ordering, treating naive values as UTC.

    Empty or unparseable values map to OLDEST_TIMESTAMP so they sort last
    in most-recent-first orderings.
    """
    if not value:
        return OLDEST_TIMESTAMP
    try:
        parsed = datetime.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return OLDEST_TIMESTAMP
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def normalize_tags(value: Union[None, str, Iterable[Any]]) -> List[str]:
    """Normalize tags given as a list or a comma-separated string.

    Entries are stripped and empty entries dropped; order is kept. Any
    other scalar is read as its string form.

    Examples:
        "ml, data ,," -> ["ml", "data"]
        ["  a ", None, "b"] -> ["a", "b"]
        7 -> ["7"]
    """
    if not value:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        parts: Iterable[Any] = value
    else:
        parts = str(value).split(",")
    return [str(p).strip() for p in parts if p is not None and str(p).strip()]


def extract_title(problem: Optional[str]) -> str:
    """Derive a display title from the first sentence of a problem text."""
    first = _TITLE_BREAK_PATTERN.split(problem or "", maxsplit=1)[0].strip()
    return first[:MAX_DERIVED_TITLE_LENGTH] or UNTITLED


class RelationKind(str, Enum):
    """Relation categories computed by the similarity engine.

    Each value names the field of the target note and the field of the
    candidate note whose token sets are compared.
    """

    PROBLEM_SIMILAR = "problem_similar"  # problem vs problem
    SOLUTION_SIMILAR = "solution_similar"  # solution vs solution
    LIMIT_SIMILAR = "limit_similar"  # limit vs limit
    SOLUTION_TO_PROBLEM = "solution_to_problem"  # target limit vs candidate problem ("after")
    PROBLEM_TO_SOLUTION = "problem_to_solution"  # target problem vs candidate limit ("before")

    @property
    def field_pair(self) -> "tuple[str, str]":
        """(target field, candidate field) compared for this relation."""
        return _FIELD_PAIRS[self]


_FIELD_PAIRS = {
    RelationKind.PROBLEM_SIMILAR: ("problem", "problem"),
    RelationKind.SOLUTION_SIMILAR: ("solution", "solution"),
    RelationKind.LIMIT_SIMILAR: ("limit", "limit"),
    RelationKind.SOLUTION_TO_PROBLEM: ("limit", "problem"),
    RelationKind.PROBLEM_TO_SOLUTION: ("problem", "limit"),
}


class Note(BaseModel):
    """A note as read by the engines.

    Every field is declared and defaulted so the engines never check for
    missing attributes. Use ``Note.from_record`` to ingest loose records.
    """

    id: str = Field(..., description="Opaque unique identifier")
    title: str = Field(default="", description="Display title, may be empty")
    subject: str = Field(default="", description="Subject/schema name (paper, idea, note, ...)")
    problem: str = Field(default="", description="Problem statement")
    solution: str = Field(default="", description="Solution text")
    limit: str = Field(default="", description="Limitations / open ends of the solution")
    details: str = Field(default="", description="Free-form details")
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")
    created_at: str = Field(default="", description="Creation timestamp (ISO 8601)")
    updated_at: str = Field(default="", description="Last update timestamp (ISO 8601)")
    status: str = Field(default="")
    priority: str = Field(default="")
    due_date: str = Field(default="")
    props: Dict[str, Any] = Field(
        default_factory=dict, description="Subject-schema properties"
    )

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        """Validate that the ID is present."""
        v = coerce_text(v).strip()
        if not v:
            raise ValueError("Note ID cannot be empty")
        return v

    @field_validator(
        "title", "subject", "problem", "solution", "limit", "details",
        "created_at", "updated_at", "status", "priority", "due_date",
        mode="before",
    )
    @classmethod
    def validate_text(cls, v: Any) -> str:
        return coerce_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_validator("props", mode="before")
    @classmethod
    def validate_props(cls, v: Any) -> Dict[str, Any]:
        return dict(v) if isinstance(v, Mapping) else {}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Note":
        """Build a Note from a loosely-typed record (API payload, JSON file, DB row).

        Accepts ``limit_text`` as an alias of ``limit`` and derives the title
        from the problem statement when it is blank. Unknown keys are ignored.

        Raises:
            pydantic.ValidationError: If the record has no usable id.
        """
        data = {name: record.get(name) for name in cls.model_fields if name in record}
        if not coerce_text(data.get("limit")) and record.get("limit_text") is not None:
            data["limit"] = record.get("limit_text")
        if not coerce_text(data.get("title")).strip():
            data["title"] = extract_title(coerce_text(data.get("problem")))
        return cls(**data)


class Draft(BaseModel):
    """Unsaved note fields used for live similarity previews."""

    problem: str = ""
    solution: str = ""
    limit: str = ""

    model_config = {"frozen": True}

    @field_validator("problem", "solution", "limit", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> str:
        return coerce_text(v)


@dataclass(frozen=True)
class RelationScore:
    """A related note and its token-overlap score."""

    id: str
    title: str
    score: int


# Relation name -> ranked relation list
RelationBundle = Dict[str, List[RelationScore]]


@dataclass(frozen=True)
class SearchHit:
    """A phrase-search result.

    Attributes:
        score: Field-weighted occurrence count, used for ranking.
        count: Raw occurrence count across all fields, for display.
    """

    id: str
    title: str
    updated_at: str
    score: int
    count: int


class EdgeType(str, Enum):
    """Types of edges in the relation graph."""

    AFTER = "limit->after"  # Directed: target limit overlaps candidate problem
    TAG = "tag"  # Undirected: shared tags


@dataclass(frozen=True)
class GraphNode:
    id: str
    title: str


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    type: EdgeType
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "weight": self.weight,
        }


@dataclass
class Graph:
    """Nodes and edges for the relation browser."""

    subject: Optional[str]
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "nodes": [asdict(n) for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
