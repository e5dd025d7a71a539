from __future__ import annotations


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    for ln in reversed(lines):
        if ln.startswith(("File ", "^", "Traceback ")):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "api key" in s or "api_key" in s or "authentication" in s or "401" in s:
        return "OpenAI rejected the credentials. Set OPENAI_API_KEY in the environment or a .env file."
    if "rate limit" in s or "429" in s:
        return "The speech service is rate limiting requests. Wait a moment and try again."
    if "timed out" in s or "timeout" in s:
        return "The speech service is slow to respond. Check your network connection and retry."
    if "connection" in s or "network" in s or "name resolution" in s:
        return "Could not reach the speech service. Check your network connection."
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "microphone" in s or "portaudio" in s or "sounddevice" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    return "Check logs for full traceback."


def user_message(exc: BaseException) -> str:
    summary = summarize_exception(str(exc) or type(exc).__name__)
    return f"Error: {summary} {hint_for_exception(summary)}"
