"""Utilities for reading OpenAI Chat Completions responses."""

from typing import Any, Dict, Optional


def extract_message_text(response: Any) -> str:
    """Return the text of the first choice in a chat completion.

    Args:
        response: Object returned by `AsyncOpenAI.chat.completions.create`.

    Returns:
        The message content, or an empty string when the response carries none.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        return ""

    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    return content or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage if present."""
    usage = getattr(response, "usage", None)
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None) if usage else None,
        "completion_tokens": getattr(usage, "completion_tokens", None) if usage else None,
    }
