"""Session data models for compaction context."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class SessionRecord(BaseModel):
    """A prior session as read from a record source."""

    id: str = Field(default="", description="Session identifier, empty when the record had none")
    project_path: str = Field(default="", description="Project directory the session belongs to")
    timestamp: Any = Field(default=None, description="Date string or epoch milliseconds, as stored")
    summary: str = Field(default="", description="Summary, title or description text")


class SessionSummary(BaseModel):
    """A ranked session ready for rendering."""

    id: str
    date: str
    summary: str = ""


class LogEntry(BaseModel):
    """A structured message for the host's log sink."""

    service: str
    level: Literal["debug", "info", "warn"]
    message: str
    extra: dict[str, Any] = Field(default_factory=dict)
