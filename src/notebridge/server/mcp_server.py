"""MCP server exposing the notebridge engines as tools."""

import json
import logging
import uuid
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from notebridge.config import config
from notebridge.exceptions import NotebridgeError, NoteNotFoundError, validate_limit
from notebridge.models.schema import Draft, RelationBundle, RelationKind
from notebridge.observability import metrics, timed_operation
from notebridge.services.graph_service import build_graph
from notebridge.services.search_service import search_notes
from notebridge.services.similarity_service import (
    require_suggestions_for_note_id,
    suggest_for_draft,
)
from notebridge.storage.corpus_loader import CorpusLoader

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 1_000
MAX_DRAFT_FIELD_LENGTH = 100_000

# Section headings for relation lists
RELATION_LABELS = {
    RelationKind.PROBLEM_SIMILAR.value: "Similar Problems",
    RelationKind.SOLUTION_SIMILAR.value: "Similar Solutions",
    RelationKind.LIMIT_SIMILAR.value: "Similar Limits",
    RelationKind.SOLUTION_TO_PROBLEM.value: "After (limit -> problem)",
    RelationKind.PROBLEM_TO_SOLUTION.value: "Before (problem -> limit)",
}


def _validate_input_lengths(*values: Optional[str], max_length: int) -> None:
    """Validate input string lengths at the MCP boundary."""
    for value in values:
        if value and len(value) > max_length:
            raise ValueError(f"Input exceeds maximum length of {max_length} characters")


def format_bundle(bundle: RelationBundle) -> str:
    """Render a relation bundle as one section per relation."""
    output = ""
    for name, relations in bundle.items():
        output += f"## {RELATION_LABELS.get(name, name)}\n"
        if not relations:
            output += "   (none)\n\n"
            continue
        for i, rel in enumerate(relations, 1):
            output += f"{i}. {rel.title or 'Untitled'} (ID: {rel.id}) score {rel.score}\n"
        output += "\n"
    return output


class NotebridgeMcpServer:
    """MCP server for notebridge."""

    def __init__(self, corpus_loader: Optional[CorpusLoader] = None):
        """Initialize the MCP server.

        Args:
            corpus_loader: Loader for the notes directory. Each tool call
                takes a fresh snapshot from it. Defaults to config.notes_dir.
        """
        self.mcp = FastMCP(config.server_name)
        self.corpus_loader = corpus_loader or CorpusLoader()
        self.initialize()
        self._register_tools()

    def initialize(self) -> None:
        """Initialize services."""
        logger.info(f"notebridge MCP server initialized (notes: {self.corpus_loader.notes_dir})")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NotebridgeError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error": error.to_dict()},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="nb_similar_notes")
        def nb_similar_notes(note_id: str, limit: Optional[int] = None) -> str:
            """Find notes related to a stored note by shared words.

            Returns five lists: similar problems, similar solutions, similar
            limits, notes this one leads to ("after": its limit overlaps their
            problem) and notes that lead here ("before": its problem overlaps
            their limit).
            Args:
                note_id: ID of the reference note
                limit: Maximum notes per list (default from configuration)
            """
            with timed_operation("nb_similar_notes", note_id=note_id[:20]) as op:
                try:
                    if limit is not None:
                        validate_limit(limit)
                    notes = self.corpus_loader.load()
                    bundle = require_suggestions_for_note_id(notes, note_id, limit)
                    op["result_count"] = sum(len(r) for r in bundle.values())
                    return f"Notes related to {note_id}:\n\n" + format_bundle(bundle)
                except NoteNotFoundError:
                    return f"Note not found: {note_id}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="nb_similar_draft")
        def nb_similar_draft(
            problem: str = "",
            solution: str = "",
            limit_text: str = "",
            exclude_id: Optional[str] = None,
            limit: Optional[int] = None,
        ) -> str:
            """Preview related notes for unsaved text.
            Args:
                problem: Draft problem statement
                solution: Draft solution
                limit_text: Draft limitations of the solution
                exclude_id: ID of the note being edited, so it is not suggested to itself
                limit: Maximum notes per list (default from configuration)
            """
            with timed_operation("nb_similar_draft", exclude_id=exclude_id) as op:
                try:
                    _validate_input_lengths(
                        problem, solution, limit_text, max_length=MAX_DRAFT_FIELD_LENGTH
                    )
                    if limit is not None:
                        validate_limit(limit)
                    draft = Draft(problem=problem, solution=solution, limit=limit_text)
                    notes = self.corpus_loader.load()
                    bundle = suggest_for_draft(notes, draft, limit, exclude_id)
                    op["result_count"] = sum(len(r) for r in bundle.values())
                    return "Notes related to the draft:\n\n" + format_bundle(bundle)
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="nb_search")
        def nb_search(query: str, limit: Optional[int] = None) -> str:
            """Search notes for an exact phrase (case and spacing are ignored).

            Title and subject matches rank highest, then problem, solution and
            tags, then details and limit.
            Args:
                query: Phrase to search for
                limit: Maximum number of results (default from configuration)
            """
            with timed_operation("nb_search", query=query[:30] if query else None) as op:
                try:
                    _validate_input_lengths(query, max_length=MAX_QUERY_LENGTH)
                    if limit is not None:
                        validate_limit(limit)
                    hits = search_notes(self.corpus_loader.load(), query, limit)
                    op["result_count"] = len(hits)
                    if not hits:
                        return f"No notes found matching '{query}'."

                    output = f"Found {len(hits)} notes matching '{query}':\n\n"
                    for i, hit in enumerate(hits, 1):
                        output += f"{i}. {hit.title or 'Untitled'} (ID: {hit.id})\n"
                        output += f"   Score: {hit.score}  Hits: {hit.count}\n"
                        if hit.updated_at:
                            output += f"   Updated: {hit.updated_at}\n"
                        output += "\n"
                    return output
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="nb_graph")
        def nb_graph(subject: str = "") -> str:
            """Build the relation graph of one subject (or every note) as JSON.

            Edges of type "limit->after" point from a note to notes whose
            problem overlaps its limit. For the "idea" subject, notes sharing
            tags are also joined by undirected "tag" edges.
            Args:
                subject: Subject to restrict the graph to (empty for all notes)
            """
            with timed_operation("nb_graph", subject=subject or None) as op:
                try:
                    graph = build_graph(self.corpus_loader.load(), subject)
                    op["result_count"] = len(graph.edges)
                    return json.dumps(graph.to_dict(), indent=2)
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="nb_status")
        def nb_status() -> str:
            """Show corpus size and per-tool call metrics."""
            try:
                notes = self.corpus_loader.load()
                subjects: List[str] = sorted({n.subject for n in notes if n.subject})
                summary = metrics.get_summary()
                output = f"Notes: {len(notes)}\n"
                output += f"Subjects: {', '.join(subjects) if subjects else '(none)'}\n"
                output += f"Operations: {summary['total_operations']} "
                output += f"(errors: {summary['total_errors']})\n"
                for op_name, m in sorted(metrics.get_metrics().items()):
                    output += (
                        f"- {op_name}: {m['count']} calls, "
                        f"avg {m['avg_duration_ms']}ms\n"
                    )
                return output
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
