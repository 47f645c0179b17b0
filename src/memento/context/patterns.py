"""Discover project conventions from AGENTS.md and lint/format config files."""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

AGENTS_FILE = "AGENTS.md"
MAX_CONVENTIONS = 5

CONVENTIONS_RE = re.compile(r"## Conventions\n(.*?)(?=\n##|\Z)", re.DOTALL)
ANTI_PATTERNS_RE = re.compile(r"## Anti-Patterns.*?\n(.*?)(?=\n##|\Z)", re.DOTALL)

ANTI_PATTERNS_HINT = "See AGENTS.md for anti-patterns to avoid"

# (config file names, hint) pairs; any one file present adds the hint
TOOL_CONFIGS = [
    ((".eslintrc.json", ".eslintrc.js"), "ESLint configured - follow linting rules"),
    ((".prettierrc", ".prettierrc.json"), "Prettier configured - use for formatting"),
]


def parse_agents_md(text: str) -> list[str]:
    """Extract convention bullets and the anti-patterns hint from AGENTS.md text."""
    patterns = []

    match = CONVENTIONS_RE.search(text)
    if match:
        bullets = [
            line.strip() for line in match.group(1).splitlines() if line.strip().startswith("-")
        ]
        patterns.extend(re.sub(r"^- ", "", b) for b in bullets[:MAX_CONVENTIONS])

    if ANTI_PATTERNS_RE.search(text):
        patterns.append(ANTI_PATTERNS_HINT)

    return patterns


def discover_patterns(project_path: Path) -> list[str]:
    """Collect pattern hints for a project; unreadable files contribute nothing."""
    patterns = []

    try:
        text = (project_path / AGENTS_FILE).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("No conventions from %s: %s", AGENTS_FILE, exc)
    else:
        patterns.extend(parse_agents_md(text))

    for names, hint in TOOL_CONFIGS:
        if any((project_path / name).exists() for name in names):
            patterns.append(hint)

    return patterns
