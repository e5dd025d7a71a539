from __future__ import annotations

from parley.contracts import Lane
from parley.live.progress import ProgressCoordinator, Stage


def test_show_lights_one_stage_per_lane() -> None:
    events: list = []
    pc = ProgressCoordinator(listener=lambda lane, stage: events.append((lane, stage)))
    pc.show(Lane.PRIMARY, Stage.END)
    pc.show(Lane.PRIMARY, Stage.POST_TRANSCRIPTION)
    pc.show(Lane.COUNTERPART, Stage.END)

    assert pc.active(Lane.PRIMARY) is Stage.POST_TRANSCRIPTION
    assert pc.active(Lane.COUNTERPART) is Stage.END
    assert events == [
        (Lane.PRIMARY, Stage.END),
        (Lane.PRIMARY, Stage.POST_TRANSCRIPTION),
        (Lane.COUNTERPART, Stage.END),
    ]


def test_hide_only_clears_matching_stage() -> None:
    pc = ProgressCoordinator()
    pc.show(Lane.PRIMARY, Stage.INTERMEDIATE)
    pc.hide(Lane.PRIMARY, Stage.END)
    assert pc.active(Lane.PRIMARY) is Stage.INTERMEDIATE
    pc.hide(Lane.PRIMARY, Stage.INTERMEDIATE)
    assert pc.active(Lane.PRIMARY) is None


def test_hide_all_is_idempotent() -> None:
    events: list = []
    pc = ProgressCoordinator(listener=lambda lane, stage: events.append((lane, stage)))
    pc.show(Lane.PRIMARY, Stage.FINALIZING)
    pc.show(Lane.COUNTERPART, Stage.END)

    pc.hide_all()
    after_once = (pc.active(Lane.PRIMARY), pc.active(Lane.COUNTERPART), list(events))
    pc.hide_all()
    after_twice = (pc.active(Lane.PRIMARY), pc.active(Lane.COUNTERPART), list(events))

    assert after_once == after_twice
    assert not pc.any_active()


def test_hide_all_from_idle_state() -> None:
    pc = ProgressCoordinator()
    pc.hide_all(Lane.COUNTERPART)
    assert pc.active(Lane.COUNTERPART) is None


def test_in_flight_rejects_second_begin() -> None:
    pc = ProgressCoordinator()
    assert pc.begin(Lane.PRIMARY)
    assert not pc.begin(Lane.PRIMARY)
    assert pc.begin(Lane.COUNTERPART)
    assert pc.in_flight(Lane.PRIMARY)
    pc.finish(Lane.PRIMARY)
    assert not pc.in_flight(Lane.PRIMARY)
    assert pc.begin(Lane.PRIMARY)
