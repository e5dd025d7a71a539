from __future__ import annotations

from parley.audio.playback import PlaybackItem, PlaybackQueue, SoundDevicePlayer
from parley.contracts import Lane


def _item(n: int) -> PlaybackItem:
    return PlaybackItem(audio=bytes([n]), lane=Lane.PRIMARY, turn_id=str(n))


def test_queue_drops_oldest_when_full() -> None:
    q = PlaybackQueue(maxsize=2)
    for n in range(3):
        q.push(_item(n))
    assert q.dropped == 1
    assert [q.pop().turn_id, q.pop().turn_id] == ["1", "2"]
    assert q.pop() is None


def test_player_plays_wav_and_survives_errors() -> None:
    played: list[bytes] = []

    def _play(audio: bytes) -> None:
        if audio == b"\x00":
            raise RuntimeError("device lost")
        played.append(audio)

    player = SoundDevicePlayer(PlaybackQueue(), play=_play)
    assert not player.play_one(_item(0))
    assert player.play_one(_item(1))
    assert not player.play_one(PlaybackItem(audio=b"x", lane=Lane.PRIMARY, format="mp3"))
    assert played == [b"\x01"]


def test_player_thread_drains_queue() -> None:
    import threading

    done = threading.Event()
    q = PlaybackQueue()
    player = SoundDevicePlayer(q, play=lambda audio: done.set(), poll_sec=0.01)
    player.start()
    try:
        q.push(_item(5))
        assert done.wait(timeout=2)
    finally:
        player.stop()
