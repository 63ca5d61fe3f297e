"""Configuration module for the notebridge server."""

import logging
import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notebridge import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the notes
_USER_ENV = Path.home() / ".notebridge" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Field weights for phrase search. Title and subject outrank the main body
# fields, which outrank details and limit.
DEFAULT_SEARCH_WEIGHTS: Dict[str, int] = {
    "title": 3,
    "subject": 3,
    "problem": 2,
    "solution": 2,
    "tags": 2,
    "details": 1,
    "limit": 1,
}

_WEIGHT_TIERS = (
    ("title", "subject"),
    ("problem", "solution", "tags"),
    ("details", "limit"),
)


class NotebridgeConfig(BaseModel):
    """Configuration for the notebridge server."""

    # Base directory for the project
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEBRIDGE_BASE_DIR", "."))
    )
    # Directory holding the note files (*.md with frontmatter, *.json records)
    notes_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEBRIDGE_NOTES_DIR", "data/notes"))
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("NOTEBRIDGE_SERVER_NAME", "notebridge"))
    server_version: str = Field(default=__version__)
    # Result sizes
    suggest_limit: int = Field(
        default_factory=lambda: int(os.getenv("NOTEBRIDGE_SUGGEST_LIMIT", "5"))
    )
    search_limit: int = Field(
        default_factory=lambda: int(os.getenv("NOTEBRIDGE_SEARCH_LIMIT", "50"))
    )
    # Tokenizer: fragments shorter than this are dropped
    min_token_length: int = Field(
        default_factory=lambda: int(os.getenv("NOTEBRIDGE_MIN_TOKEN_LENGTH", "2"))
    )
    search_weights: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_SEARCH_WEIGHTS)
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotebridgeConfig":
        """Validate result limits, tokenizer settings and search weights."""
        if self.suggest_limit < 1:
            raise ValueError("suggest_limit must be >= 1")
        if self.search_limit < 1:
            raise ValueError("search_limit must be >= 1")
        if self.min_token_length < 1:
            raise ValueError("min_token_length must be >= 1")

        missing = set(DEFAULT_SEARCH_WEIGHTS) - set(self.search_weights)
        if missing:
            raise ValueError(
                f"search_weights is missing fields: {', '.join(sorted(missing))}"
            )
        for higher, lower in zip(_WEIGHT_TIERS, _WEIGHT_TIERS[1:]):
            floor = min(self.search_weights[name] for name in higher)
            ceiling = max(self.search_weights[name] for name in lower)
            if floor <= ceiling:
                raise ValueError(
                    f"search_weights for {'/'.join(higher)} must exceed "
                    f"those for {'/'.join(lower)}"
                )
        if min(self.search_weights.values()) < 1:
            logger.warning("search_weights contains a non-positive weight")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_notes_dir(self) -> Path:
        """Get the absolute path to the notes directory."""
        return self.get_absolute_path(self.notes_dir)


# Create a global config instance
config = NotebridgeConfig()
