"""Read-only loading of a notes directory into an in-memory corpus."""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from notebridge.config import config
from notebridge.exceptions import CorpusLoadError, ErrorCode
from notebridge.models.schema import Note, parse_timestamp
from notebridge.storage.markdown_parser import MarkdownParser

logger = logging.getLogger(__name__)


class CorpusLoader:
    """Builds a point-in-time snapshot of every note in a directory.

    ``*.json`` files hold one note record each; ``*.md`` files are parsed
    with MarkdownParser. When both ``<id>.json`` and ``<id>.md`` exist the
    JSON record is used. Unreadable files are logged and skipped.
    """

    def __init__(self, notes_dir: Optional[Union[str, Path]] = None):
        self.notes_dir = Path(notes_dir) if notes_dir else config.get_notes_dir()
        self.parser = MarkdownParser()

    def load(self) -> List[Note]:
        """Load all notes, most recently updated first.

        Raises:
            CorpusLoadError: If the notes directory does not exist.
        """
        if not self.notes_dir.is_dir():
            raise CorpusLoadError(
                "Notes directory does not exist",
                path=str(self.notes_dir),
                code=ErrorCode.CORPUS_DIR_MISSING,
            )

        notes: Dict[str, Note] = {}
        for path in sorted(self.notes_dir.glob("*.md")):
            note = self._load_file(path, self._parse_markdown)
            if note is not None:
                notes[note.id] = note
        # JSON records replace markdown notes with the same id
        for path in sorted(self.notes_dir.glob("*.json")):
            note = self._load_file(path, self._parse_json)
            if note is not None:
                notes[note.id] = note

        corpus = sorted(
            notes.values(), key=lambda n: parse_timestamp(n.updated_at), reverse=True
        )
        logger.debug(f"Loaded {len(corpus)} notes from {self.notes_dir}")
        return corpus

    @staticmethod
    def _load_file(path: Path, parse) -> Optional[Note]:
        try:
            return parse(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable note file {path.name}: {e}")
        except (ValueError, TypeError, yaml.YAMLError, PydanticValidationError) as e:
            logger.warning(f"Skipping malformed note file {path.name}: {e}")
        return None

    def _parse_markdown(self, path: Path) -> Note:
        return self.parser.parse_note(
            path.read_text(encoding="utf-8"), fallback_id=path.stem
        )

    @staticmethod
    def _parse_json(path: Path) -> Note:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("JSON note file must contain an object")
        data.setdefault("id", path.stem)
        return Note.from_record(data)


def load_corpus(notes_dir: Optional[Union[str, Path]] = None) -> List[Note]:
    """Load the notes directory (config.notes_dir by default)."""
    return CorpusLoader(notes_dir).load()
