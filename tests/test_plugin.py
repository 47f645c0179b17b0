"""Tests for configuration, the activation gate and the compaction hook."""

import json
import threading

import pytest
from pydantic import ValidationError

from memento.config import DEFAULT_LOCATIONS, MementoConfig, config_path, load_config
from memento.context.assembler import DEFAULT_TITLE
from memento.context.models import LogEntry
from memento.context.store import FileSessionSource
from memento.gate import ActivationGate
from memento.plugin import HOOK_NAME, CompactionOutput, SessionContextPlugin


@pytest.fixture
def project(tmp_path):
    p = tmp_path / "project"
    p.mkdir()
    return p


def write_config(project, data) -> None:
    path = config_path(project)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))


def add_sessions(sessions_dir, project, n: int, start: int = 0) -> None:
    for i in range(start, start + n):
        (sessions_dir / f"s{i}.json").write_text(
            json.dumps({"id": f"s{i}", "directory": str(project), "createdAt": f"2024-01-{i + 1:02d}"})
        )


class RecordingSink:
    def __init__(self):
        self.entries: list[LogEntry] = []

    async def __call__(self, entry: LogEntry) -> None:
        self.entries.append(entry)


class TestConfig:
    def test_defaults_when_missing(self, project):
        config = load_config(project)
        assert config == MementoConfig()
        assert config.min_sessions == 5
        assert config.search_limit == 3
        assert config.exclude_patterns == ["node_modules", "dist", ".git"]
        assert config.resolve_location(project) == DEFAULT_LOCATIONS["files"]

    def test_merges_with_defaults(self, project):
        write_config(project, {"minSessions": 1, "customContext": ["note"], "unknownKey": True})
        config = load_config(project)
        assert config.min_sessions == 1
        assert config.custom_context == ["note"]
        assert config.search_limit == 3

    @pytest.mark.parametrize("data", ["{not json", "[1, 2]", {"searchLimit": 0}, {"minSessions": -1}])
    def test_bad_config_falls_back(self, project, data):
        write_config(project, data)
        assert load_config(project) == MementoConfig()

    def test_sqlite_default_location(self, project):
        config = MementoConfig(backend="sqlite")
        assert config.resolve_location(project) == DEFAULT_LOCATIONS["sqlite"]

    def test_location_expands_home(self, project, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = MementoConfig(sessionsDir="~/sessions")
        assert config.resolve_location(project) == tmp_path / "sessions"

    def test_unexpandable_home_falls_back(self, project):
        write_config(project, {"minSessions": 1, "sessionsDir": "~nosuchuser_zz/sessions"})
        config = load_config(project)
        assert config == MementoConfig()
        assert config.resolve_location(project) == DEFAULT_LOCATIONS["files"]

    @pytest.mark.asyncio
    async def test_unexpandable_home_does_not_stop_start(self, project):
        write_config(project, {"sessionsDir": "~nosuchuser_zz/sessions"})
        plugin = await SessionContextPlugin.start(project, sink=RecordingSink())
        assert plugin.source.location == DEFAULT_LOCATIONS["files"]

    def test_frozen(self):
        with pytest.raises(ValidationError):
            MementoConfig().min_sessions = 3


class TestActivationGate:
    def test_threshold(self, sessions_dir, project):
        add_sessions(sessions_dir, project, 3)
        source = FileSessionSource(sessions_dir)
        assert ActivationGate.evaluate(source, str(project), 3).active
        assert not ActivationGate.evaluate(source, str(project), 4).active
        assert ActivationGate.evaluate(source, str(project), 0).active


class TestSessionContextPlugin:
    @pytest.mark.asyncio
    async def test_injects_when_active(self, project, sessions_dir):
        add_sessions(sessions_dir, project, 3)
        (project / ".prettierrc").write_text("{}")
        write_config(
            project,
            {"minSessions": 3, "searchLimit": 2, "sessionsDir": str(sessions_dir), "customContext": ["Ship it"]},
        )
        sink = RecordingSink()
        plugin = await SessionContextPlugin.start(project, sink=sink)

        output = CompactionOutput()
        await plugin.hooks()[HOOK_NAME]({"sessionID": "x"}, output)

        assert len(output.context) == 1
        block = output.context[0]
        assert block.startswith(DEFAULT_TITLE)
        assert "- s2 (2024-01-03): No summary" in block
        assert "- s1 (2024-01-02): No summary" in block
        assert "- s0 " not in block
        assert "- Prettier configured - use for formatting" in block
        assert "- Ship it" in block
        assert [e.level for e in sink.entries] == ["warn", "info", "debug"]
        assert sink.entries[1].message == "Session context injection active (3 prior sessions)"

    @pytest.mark.asyncio
    async def test_gate_is_one_shot(self, project, sessions_dir):
        add_sessions(sessions_dir, project, 2)
        write_config(project, {"minSessions": 3, "sessionsDir": str(sessions_dir)})
        sink = RecordingSink()
        plugin = await SessionContextPlugin.start(project, sink=sink)
        assert not plugin.active

        add_sessions(sessions_dir, project, 5, start=2)
        output = CompactionOutput()
        for _ in range(3):
            await plugin.on_compacting({}, output)

        assert output.context == []
        assert [e.level for e in sink.entries] == ["warn"]

    @pytest.mark.asyncio
    async def test_nothing_to_inject(self, project, sessions_dir):
        other = project.parent / "other"
        add_sessions(sessions_dir, other, 2)
        write_config(project, {"minSessions": 0, "sessionsDir": str(sessions_dir)})
        plugin = await SessionContextPlugin.start(project, sink=RecordingSink())
        assert plugin.active

        output = CompactionOutput()
        await plugin.on_compacting({}, output)
        assert output.context == []

    @pytest.mark.asyncio
    async def test_missing_sessions_dir(self, project, tmp_path):
        write_config(project, {"minSessions": 0, "sessionsDir": str(tmp_path / "gone"), "customContext": ["n"]})
        plugin = await SessionContextPlugin.start(project, sink=RecordingSink())

        output = CompactionOutput()
        await plugin.on_compacting({}, output)
        assert len(output.context) == 1
        assert "### Recent Sessions" not in output.context[0]

    @pytest.mark.asyncio
    async def test_sqlite_backend(self, project, session_db):
        db, insert = session_db
        insert("s1", str(project), 1700000000000, title="First")
        insert("s2", str(project), 1700000001000)
        write_config(project, {"backend": "sqlite", "minSessions": 2, "sessionsDir": str(db)})
        plugin = await SessionContextPlugin.start(project, sink=RecordingSink())

        block = plugin.build_context()
        assert "- s2 (2023-11-14T22:13:21.000Z): No title" in block
        assert "- s1 (2023-11-14T22:13:20.000Z): First" in block
        assert block.index("s2") < block.index("s1")

    @pytest.mark.asyncio
    async def test_hook_builds_off_the_event_loop(self, project, monkeypatch):
        write_config(project, {"minSessions": 0, "customContext": ["n"], "sessionsDir": str(project / "none")})
        plugin = await SessionContextPlugin.start(project, sink=RecordingSink())
        loop_thread = threading.get_ident()
        seen = []
        original = plugin.build_context

        def recording_build(force=False):
            seen.append(threading.get_ident())
            return original(force)

        monkeypatch.setattr(plugin, "build_context", recording_build)
        output = CompactionOutput()
        await plugin.on_compacting({}, output)

        assert len(output.context) == 1
        assert seen and seen[0] != loop_thread

    @pytest.mark.asyncio
    async def test_sync_sink_and_default_sink(self, project, tmp_path, caplog):
        config = MementoConfig(sessionsDir=str(tmp_path / "none"))
        received = []
        await SessionContextPlugin.start(project, sink=received.append, config=config)
        assert received[0].service == "opencode-memento"

        await SessionContextPlugin.start(project, config=config)
        assert "experimental session.compacting hook" in caplog.text
