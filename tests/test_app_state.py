from __future__ import annotations

import pytest

from parley.app.state import ConversationContext, RuntimeState, RuntimeStateTracker
from parley.contracts import Lane


def test_context_languages_per_lane() -> None:
    ctx = ConversationContext(primary_language="EN", counterpart_language="ky")
    assert ctx.language_for(Lane.PRIMARY) == "en"
    assert ctx.language_for(Lane.COUNTERPART) == "ky"
    assert ctx.selection() == {"primary": "en", "counterpart": "ky"}


def test_context_rejects_unknown_language() -> None:
    ctx = ConversationContext()
    with pytest.raises(ValueError):
        ctx.set_languages("en", "xx")
    assert ctx.counterpart_language == "ky"


def test_runtime_state_tracker_transitions() -> None:
    tracker = RuntimeStateTracker()
    tracker.set_running()
    assert tracker.state == RuntimeState.RUNNING
    tracker.set_error("boom")
    assert tracker.state == RuntimeState.ERROR
    assert tracker.last_error == "boom"
    tracker.set_stopped()
    assert tracker.state == RuntimeState.STOPPED
    tracker.set_running()
    assert tracker.last_error is None
