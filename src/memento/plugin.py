"""Compaction hook that injects prior-session context for a project.

The host builds the plugin once per project with :meth:`SessionContextPlugin.start`
and then calls :meth:`SessionContextPlugin.on_compacting` each time it compacts
a session. The plugin appends at most one text block to ``output.context``.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from memento.config import SERVICE_NAME, MementoConfig, load_config
from memento.context.assembler import DEFAULT_TITLE, assemble
from memento.context.models import LogEntry
from memento.context.patterns import discover_patterns
from memento.context.store import RecordSource, build_source
from memento.gate import ActivationGate

HOOK_NAME = "experimental.session.compacting"

LogSink = Callable[[LogEntry], Any]

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING}


def logging_sink(entry: LogEntry) -> None:
    """Default sink: forward host log entries to the ``memento`` logger."""
    logging.getLogger("memento").log(
        _LEVELS[entry.level], "[%s] %s %s", entry.service, entry.message, entry.extra
    )


@dataclass
class CompactionOutput:
    """The host's compaction output; ``context`` collects injected blocks."""

    context: list[str] = field(default_factory=list)


class SessionContextPlugin:
    def __init__(
        self,
        directory: str | Path,
        config: MementoConfig,
        source: RecordSource,
        gate: ActivationGate,
        sink: LogSink | None = None,
    ):
        self.project_dir = Path(directory)
        self.project_path = str(directory)
        self.config = config
        self.source = source
        self.gate = gate
        self.sink = sink or logging_sink

    @classmethod
    async def start(
        cls,
        directory: str | Path,
        sink: LogSink | None = None,
        config: MementoConfig | None = None,
    ) -> "SessionContextPlugin":
        """Load config, pick the record source and evaluate the activation gate."""
        project_dir = Path(directory)
        config = config or load_config(project_dir)
        source = build_source(config, project_dir)
        gate = await asyncio.to_thread(
            ActivationGate.evaluate, source, str(directory), config.min_sessions
        )
        plugin = cls(directory, config, source, gate, sink)

        await plugin.emit(
            "warn",
            "Using experimental session.compacting hook - behavior may change",
            hook=HOOK_NAME,
        )
        if gate.active:
            await plugin.emit(
                "info",
                f"Session context injection active ({gate.session_count} prior sessions)",
                location=str(source.location),
            )
        return plugin

    @property
    def active(self) -> bool:
        return self.gate.active

    async def emit(self, level: str, message: str, **extra: Any) -> None:
        result = self.sink(LogEntry(service=SERVICE_NAME, level=level, message=message, extra=extra))
        if inspect.isawaitable(result):
            await result

    def build_context(self, force: bool = False) -> str | None:
        """Assemble the context block, or None when inactive or empty."""
        if not (force or self.active):
            return None
        sessions = self.source.recent(self.project_path, self.config.search_limit)
        patterns = discover_patterns(self.project_dir)
        return assemble(
            DEFAULT_TITLE,
            sessions,
            patterns,
            self.config.custom_context,
            placeholder=self.source.placeholder,
        )

    async def on_compacting(self, input: Any, output: Any) -> None:
        block = await asyncio.to_thread(self.build_context)
        if block is None:
            return
        output.context.append(block)
        await self.emit(
            "debug",
            "Injected session context into compaction",
            session_count=self.gate.session_count,
            lines=block.count("\n") + 1,
            location=str(self.source.location),
        )

    def hooks(self) -> dict[str, Callable]:
        return {HOOK_NAME: self.on_compacting}
