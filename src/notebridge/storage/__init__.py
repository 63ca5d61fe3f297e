"""Read-only storage layer: note file parsing and corpus loading."""

from notebridge.storage.corpus_loader import CorpusLoader, load_corpus
from notebridge.storage.markdown_parser import MarkdownParser

__all__ = [
    "CorpusLoader",
    "MarkdownParser",
    "load_corpus",
]
