# tests/test_mcp_server.py
"""Tests for the MCP server implementation."""
import json
import logging
from unittest.mock import MagicMock, patch

from notebridge.exceptions import CorpusLoadError
from notebridge.server.mcp_server import NotebridgeMcpServer, format_bundle

TOOL_NAMES = {"nb_similar_notes", "nb_similar_draft", "nb_search", "nb_graph", "nb_status"}


class TestMcpServer:
    """Tests for the NotebridgeMcpServer class."""

    def setup_method(self):
        """Set up test environment before each test."""
        self.registered_tools = {}
        self.mock_mcp = MagicMock()

        # Capture tool functions as they are registered
        def mock_tool_decorator(*args, **kwargs):
            def tool_wrapper(func):
                self.registered_tools[kwargs.get('name')] = func
                return func
            return tool_wrapper
        self.mock_mcp.tool = mock_tool_decorator

        self.mock_loader = MagicMock()
        self.mock_loader.notes_dir = "/notes"
        self.mock_loader.load.return_value = []

        self.mcp_patcher = patch('notebridge.server.mcp_server.FastMCP', return_value=self.mock_mcp)
        self.mcp_patcher.start()
        self.server = NotebridgeMcpServer(corpus_loader=self.mock_loader)

    def teardown_method(self):
        """Clean up after each test."""
        self.mcp_patcher.stop()

    def test_tools_registered(self):
        assert set(self.registered_tools) == TOOL_NAMES

    def test_similar_notes(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_similar_notes'](note_id="consensus")
        assert "## Similar Problems" in result
        assert "## After (limit -> problem)" in result
        assert "Raft (ID: raft) score 3" in result
        self.mock_loader.load.assert_called_once()

    def test_similar_notes_not_found(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_similar_notes'](note_id="missing")
        assert result == "Note not found: missing"

    def test_similar_notes_rejects_negative_limit(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_similar_notes'](note_id="raft", limit=-1)
        assert result == "Error: limit must be >= 0"
        self.mock_loader.load.assert_not_called()

    def test_similar_draft_excludes_note(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        tool = self.registered_tools['nb_similar_draft']
        result = tool(problem="distributed consensus protocol design", exclude_id="raft")
        assert "(ID: raft)" not in result
        assert tool(problem="distributed consensus protocol design").count("(ID: raft)") == 1

    def test_similar_draft_empty(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_similar_draft']()
        assert result.count("(none)") == 5

    def test_search(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_search'](query="Log  Compaction")
        assert result.startswith("Found 2 notes matching")
        # Problem match (weight 2) outranks limit match (weight 1)
        assert result.index("Snapshots") < result.index("Raft")
        assert "Score: 2  Hits: 1" in result

    def test_search_blank_query_has_no_results(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_search'](query="   ")
        assert result == "No notes found matching '   '."
        assert not result.startswith("Error")

    def test_search_no_hits(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        result = self.registered_tools['nb_search'](query="paxos")
        assert result == "No notes found matching 'paxos'."

    def test_graph(self, chain_corpus):
        self.mock_loader.load.return_value = chain_corpus
        data = json.loads(self.registered_tools['nb_graph'](subject="paper"))
        assert data["subject"] == "paper"
        assert len(data["nodes"]) == 2
        assert {"source": "consensus", "target": "raft", "type": "limit->after", "weight": 3} in data["edges"]

    def test_corpus_errors_are_reported(self):
        self.mock_loader.load.side_effect = CorpusLoadError("Notes directory does not exist", path="/x/notes")
        result = self.registered_tools['nb_search'](query="raft")
        assert result == "Error: Notes directory does not exist"

    def test_errors_log_structured_details(self, caplog):
        with caplog.at_level(logging.ERROR, logger="notebridge.server.mcp_server"):
            self.registered_tools['nb_search'](query="raft", limit=-1)
        record = next(r for r in caplog.records if hasattr(r, "error"))
        assert record.error["code_name"] == "INVALID_LIMIT"
        assert record.error["details"]["field"] == "limit"

    def test_unexpected_errors_hide_details(self):
        self.mock_loader.load.side_effect = RuntimeError("secret internals")
        result = self.registered_tools['nb_graph']()
        assert result.startswith("Error: An unexpected error occurred (ref: ")
        assert "secret" not in result

    def test_status(self, chain_corpus, isolated_metrics):
        self.mock_loader.load.return_value = chain_corpus
        self.registered_tools['nb_search'](query="raft")
        result = self.registered_tools['nb_status']()
        assert "Notes: 3" in result
        assert "Subjects: idea, paper" in result
        assert "- nb_search: 1 calls" in result


def test_format_bundle_marks_empty_sections():
    output = format_bundle({"problem_similar": [], "custom": []})
    assert "## Similar Problems\n   (none)" in output
    assert "## custom" in output
