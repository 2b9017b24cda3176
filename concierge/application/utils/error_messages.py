from __future__ import annotations

DEFAULT_ERROR_MESSAGE = "Error processing your request. Please try again."


def describe_upstream_error(error: BaseException) -> tuple[str, str]:
    """Map a provider failure to (category, user-facing message). Never exposes a traceback."""
    raw = str(error).strip()
    lowered = raw.lower()

    if "api key" in lowered:
        return "configuration", "Invalid OpenAI API key. Please check your .env file."
    if "rate limit" in lowered:
        return "rate_limit", "Rate limit exceeded. Please wait a moment and try again."
    if "timed out" in lowered or "timeout" in lowered:
        return "timeout", "The assistant took too long to respond. Please try again."
    if "model" in lowered:
        return "model_unavailable", "Model not available. Please check your OpenAI account."
    if not raw:
        return "unknown", DEFAULT_ERROR_MESSAGE
    return "unknown", f"Error: {raw}"
