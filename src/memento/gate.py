"""One-shot decision on whether a project has enough history to inject."""

from dataclasses import dataclass

from memento.context.store import RecordSource


@dataclass(frozen=True)
class ActivationGate:
    session_count: int
    min_sessions: int

    @property
    def active(self) -> bool:
        return self.session_count >= self.min_sessions

    @classmethod
    def evaluate(cls, source: RecordSource, project_path: str, min_sessions: int) -> "ActivationGate":
        """Count matching sessions once; the result is never refreshed."""
        return cls(session_count=source.count(project_path), min_sessions=min_sessions)
