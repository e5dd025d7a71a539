from __future__ import annotations

from parley.app.diagnostics import hint_for_exception, summarize_exception, user_message


def test_summarize_exception_uses_last_meaningful_line() -> None:
    detail = """Traceback (most recent call last):
  File "x.py", line 1, in <module>
    foo()
RuntimeError: boom happened
"""
    assert summarize_exception(detail) == "RuntimeError: boom happened"


def test_summarize_exception_handles_blank_and_long() -> None:
    assert summarize_exception("") == "Unknown runtime error."
    long = "x" * 500
    out = summarize_exception(long, max_len=50)
    assert len(out) == 50
    assert out.endswith("...")


def test_hint_for_exception_known_cases() -> None:
    assert "OPENAI_API_KEY" in hint_for_exception("OPENAI_API_KEY environment variable is not set. api key")
    assert "rate limiting" in hint_for_exception("Error code: 429 - Rate limit reached")
    assert "network" in hint_for_exception("Connection refused")
    assert "Microphone" in hint_for_exception("PortAudio error opening stream")
    assert "logs" in hint_for_exception("something unexpected")


def test_user_message_combines_summary_and_hint() -> None:
    msg = user_message(TimeoutError("Request timed out"))
    assert msg.startswith("Error: Request timed out")
    assert "network" in msg
    assert user_message(ValueError()).startswith("Error: ValueError")
