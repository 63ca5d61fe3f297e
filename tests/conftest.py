"""Common test fixtures for notebridge."""

import json

import pytest

from notebridge import observability
from notebridge.models.schema import Note
from notebridge.observability import MetricsCollector
from notebridge.server import mcp_server


@pytest.fixture(autouse=True)
def isolated_metrics(tmp_path, monkeypatch):
    """Swap the global metrics collector for one that never touches ~/.notebridge."""
    collector = MetricsCollector(
        metrics_file=tmp_path / "metrics.json",
        auto_save_interval=0,
        load_existing=False,
    )
    monkeypatch.setattr(observability, "metrics", collector)
    monkeypatch.setattr(mcp_server, "metrics", collector)
    yield collector


@pytest.fixture
def make_note():
    """Factory for notes with every field defaulted."""

    def _make(note_id, **fields):
        return Note(id=note_id, **fields)

    return _make


@pytest.fixture
def cache_corpus(make_note):
    """Two notes whose problem and solution texts are swapped."""
    return [
        make_note(
            "1",
            title="Cache eviction",
            problem="cache eviction policy",
            solution="LRU list",
            limit="",
        ),
        make_note(
            "2",
            title="LRU tuning",
            problem="LRU list tuning",
            solution="cache eviction policy",
            limit="",
        ),
    ]


@pytest.fixture
def chain_corpus(make_note):
    """Notes linked through limit -> problem overlaps."""
    return [
        make_note(
            "consensus",
            title="Consensus",
            subject="paper",
            problem="replicated log ordering",
            solution="leader based consensus",
            limit="needs distributed consensus protocol",
            updated_at="2024-02-01T00:00:00Z",
        ),
        make_note(
            "raft",
            title="Raft",
            subject="paper",
            problem="distributed consensus protocol design",
            solution="leader election with terms",
            limit="log compaction",
            updated_at="2024-03-01T00:00:00Z",
        ),
        make_note(
            "snapshots",
            title="Snapshots",
            subject="idea",
            problem="log compaction for large state",
            solution="periodic snapshots",
            limit="",
            tags=["storage", "Raft"],
            updated_at="2024-01-01T00:00:00Z",
        ),
    ]


@pytest.fixture
def notes_dir(tmp_path):
    """A notes directory with one markdown note and one JSON note."""
    directory = tmp_path / "notes"
    directory.mkdir()
    (directory / "md-note.md").write_text(
        "---\n"
        "id: md-note\n"
        "subject: paper\n"
        "tags: [caching, lru]\n"
        "updated: '2024-01-02T10:00:00+00:00'\n"
        "---\n"
        "# Cache eviction\n"
        "\n"
        "## Problem\n"
        "\n"
        "Which entries to evict?\n"
        "\n"
        "## Solution\n"
        "\n"
        "Least recently used.\n",
        encoding="utf-8",
    )
    (directory / "json-note.json").write_text(
        json.dumps(
            {
                "id": "json-note",
                "title": "Scan resistance",
                "problem": "LRU is polluted by scans",
                "solution": "Use two queues",
                "limit_text": "Tuning the queue split",
                "tags": "caching, scans",
                "updated_at": "2024-03-05T08:00:00+00:00",
            }
        ),
        encoding="utf-8",
    )
    return directory
