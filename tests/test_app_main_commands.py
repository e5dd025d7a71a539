from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

from parley.app.main import handle_command, parse_lane
from parley.app.state import ConversationContext
from parley.contracts import Lane
from parley.history.store import HistoryStore, NewTurn


class _Runtime:
    """Just enough of ConversationRuntime for the prompt commands."""

    def __init__(self, tmp_path: Path) -> None:
        self.history = HistoryStore(tmp_path)
        self.context = ConversationContext()
        self.started: list[Lane] = []
        self.typed: list[tuple[Lane, str]] = []

    def start(self, lane: Lane) -> bool:
        self.started.append(lane)
        return True

    def stop(self):
        return None

    def submit_text(self, lane: Lane, text: str):
        self.typed.append((lane, text))
        return None

    def switch_user(self, identity):
        return self.history.switch_user(identity)

    def set_languages(self, primary: str, counterpart: str) -> None:
        self.context.set_languages(primary, counterpart)


def _run(runtime, line: str) -> list[str]:
    out: list[str] = []
    assert handle_command(runtime, line, out=out.append)
    return out


def _seed(runtime: _Runtime, text: str) -> None:
    runtime.history.add_turn(
        NewTurn(original_text=text, translated_text=text.upper(), source_language="en", target_language="ky", confidence=0.9)
    )


def test_parse_lane_accepts_prefixes() -> None:
    assert parse_lane("primary") is Lane.PRIMARY
    assert parse_lane("c") is Lane.COUNTERPART
    assert parse_lane("") is None
    assert parse_lane("other") is None


def test_quit_and_blank_lines(tmp_path: Path) -> None:
    runtime = _Runtime(tmp_path)
    assert not handle_command(runtime, "quit", out=lambda s: None)
    assert handle_command(runtime, "   ", out=lambda s: None)


def test_start_stop_and_say(tmp_path: Path) -> None:
    runtime = _Runtime(tmp_path)
    assert "Recording primary (en)" in _run(runtime, "start primary")[0]
    assert _run(runtime, "stop") == ["Nothing recorded."]
    _run(runtime, "say counterpart Салам, кандайсыз?")
    assert runtime.typed == [(Lane.COUNTERPART, "Салам, кандайсыз?")]
    assert _run(runtime, "say nobody hi")[0].startswith("Usage")


def test_history_search_delete_clear(tmp_path: Path) -> None:
    runtime = _Runtime(tmp_path)
    _seed(runtime, "good morning")
    _seed(runtime, "good night")

    assert len(_run(runtime, "history")) == 2
    (line,) = _run(runtime, "history night")
    assert "good night" in line

    target = runtime.history.search("morning")[0]
    assert _run(runtime, f"delete {target.id[:12]}") == [f"Deleted {target.id}"]
    assert runtime.history.total_turns() == 1

    _run(runtime, "clear")
    assert _run(runtime, "history") == ["No conversations."]


def test_export_import(tmp_path: Path) -> None:
    runtime = _Runtime(tmp_path / "store")
    _seed(runtime, "hello")
    path = tmp_path / "export.json"
    _run(runtime, f"export {path}")
    assert json.loads(path.read_text(encoding="utf-8"))["turns"][0]["originalText"] == "hello"

    runtime.history.clear_all()
    assert _run(runtime, f"import {path}") == ["Imported 1 turns."]

    bad = tmp_path / "bad.json"
    bad.write_text("{}", encoding="utf-8")
    assert _run(runtime, f"import {bad}")[0].startswith("Import failed")
    assert runtime.history.total_turns() == 1


def test_user_and_lang(tmp_path: Path) -> None:
    runtime = _Runtime(tmp_path)
    assert _run(runtime, "user bob") == ["History user: bob"]
    assert _run(runtime, "lang ru en") == ["Languages: primary=ru counterpart=en"]
    assert "Unsupported language" in _run(runtime, "lang ru xx")[0]
    assert runtime.context.primary_language == "ru"
    assert _run(runtime, "frobnicate")[0].startswith("Unknown command")
