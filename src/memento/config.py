"""Configuration loading and default locations for memento."""

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SERVICE_NAME = "opencode-memento"
CONFIG_RELPATH = Path(".opencode") / "session-context.json"

OPENCODE_DATA_DIR = Path.home() / ".local" / "share" / "opencode"

# Default backend locations, keyed by backend
DEFAULT_LOCATIONS = {
    "files": OPENCODE_DATA_DIR / "sessions",
    "sqlite": OPENCODE_DATA_DIR / "opencode.db",
}

DEFAULT_EXCLUDE_PATTERNS = ["node_modules", "dist", ".git"]


class MementoConfig(BaseModel):
    """Per-project plugin settings read from ``.opencode/session-context.json``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    min_sessions: int = Field(default=5, ge=0, alias="minSessions")
    search_limit: int = Field(default=3, ge=1, alias="searchLimit")
    # include/exclude patterns are accepted but not applied to lookups yet
    include_patterns: list[str] = Field(default_factory=list, alias="includePatterns")
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS), alias="excludePatterns"
    )
    custom_context: list[str] = Field(default_factory=list, alias="customContext")
    backend: Literal["files", "sqlite"] = "files"
    sessions_dir: str | None = Field(default=None, alias="sessionsDir")

    @field_validator("sessions_dir")
    @classmethod
    def _expandable(cls, value: str | None) -> str | None:
        if value:
            try:
                Path(value).expanduser()
            except RuntimeError as exc:
                raise ValueError(f"cannot expand {value!r}: {exc}") from exc
        return value

    def resolve_location(self, project_dir: Path) -> Path:
        """Return the backend location: the override, or the backend's default."""
        if not self.sessions_dir:
            return DEFAULT_LOCATIONS[self.backend]
        try:
            location = Path(self.sessions_dir).expanduser()
        except RuntimeError as exc:
            logger.debug("Using default location, cannot expand %s: %s", self.sessions_dir, exc)
            return DEFAULT_LOCATIONS[self.backend]
        if not location.is_absolute():
            location = project_dir / location
        return location


def config_path(project_dir: Path) -> Path:
    return project_dir / CONFIG_RELPATH


def load_config(project_dir: Path) -> MementoConfig:
    """Load the project's config file, falling back to defaults on any problem."""
    path = config_path(project_dir)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return MementoConfig()
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.debug("Ignoring unreadable config %s: %s", path, exc)
        return MementoConfig()

    if not isinstance(raw, dict):
        logger.debug("Ignoring config %s: expected a JSON object", path)
        return MementoConfig()

    try:
        return MementoConfig.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Ignoring invalid config %s: %s", path, exc)
        return MementoConfig()
