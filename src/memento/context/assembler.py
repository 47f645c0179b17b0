"""Render ranked sessions, patterns and notes into one context block."""

from collections.abc import Sequence

from memento.context.models import SessionSummary

DEFAULT_TITLE = "## Session Context (from opencode-memento)"

SESSIONS_HEADING = "### Recent Sessions"
PATTERNS_HEADING = "### Key Patterns from Prior Work"
NOTES_HEADING = "### Project-Specific Notes"


def _bullet(text: str) -> str:
    return text if text.startswith("- ") else f"- {text}"


def _section(heading: str, items: list[str]) -> list[str]:
    return [heading, "", *items, ""]


def assemble(
    title: str,
    sessions: Sequence[SessionSummary],
    patterns: Sequence[str],
    notes: Sequence[str],
    placeholder: str = "No summary",
) -> str | None:
    """Build the context block, or None when every section is empty."""
    lines = [title, ""]
    header_len = len(lines)

    if sessions:
        lines += _section(
            SESSIONS_HEADING,
            [f"- {s.id} ({s.date}): {s.summary or placeholder}" for s in sessions],
        )
    if patterns:
        lines += _section(PATTERNS_HEADING, [f"- {p}" for p in patterns])
    if notes:
        lines += _section(NOTES_HEADING, [_bullet(n) for n in notes])

    if len(lines) == header_len:
        return None
    return "\n".join(lines)
