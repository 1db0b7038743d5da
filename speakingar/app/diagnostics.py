from __future__ import annotations

from speakingar.ai.errors import GenerationError


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    lines = [ln.strip() for ln in str(detail or "").splitlines() if ln.strip()]
    meaningful = [
        ln for ln in lines
        if not ln.startswith(("File ", "^", "Traceback "))
    ]
    if not lines:
        return "Unknown runtime error."
    out = meaningful[-1] if meaningful else lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def describe_error(exc: BaseException) -> str:
    """One user-facing line for an exception; generation errors carry their own wording."""
    if isinstance(exc, GenerationError):
        return exc.user_message
    text = str(exc).strip()
    name = type(exc).__name__
    return summarize_exception(f"{name}: {text}" if text else name)


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "openai_api_key" in s or "api key" in s:
        return "Set OPENAI_API_KEY (or --api-key) to enable AI reply suggestions."
    if "argos" in s:
        return "Argos language package missing. Run once with network access or use --translator stub."
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "microphone" in s or "sounddevice" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    if "ステータスコード" in s or "status" in s:
        return "The AI service rejected the request. Check the endpoint, model and API key."
    return "Check logs for full traceback."
