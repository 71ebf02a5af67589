"""Chat completion gateway used by the session engine's chat fallback.

The gateway is stateless: every call receives the system prompt, a bounded
window of prior messages, and the current user message, and returns the
model's reply text. Errors from the OpenAI client are re-raised as
`ChatGatewayError` so callers can recover from a single exception type.
"""

import logging
import time
from typing import Dict, List, Sequence

from openai import AsyncOpenAI

from models.session_models import Message
from services.openai.response_utils import extract_message_text, extract_usage

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class ChatGatewayError(RuntimeError):
    """The language-model call failed or timed out."""


class ChatCompletionGateway:
    """Send a bounded conversation to the Chat Completions API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 512,
        temperature: float = 0.7,
    ) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @staticmethod
    def build_messages(system_prompt: str, history: Sequence[Message], message: str) -> List[Dict[str, str]]:
        """Assemble `[system, *history, user]` in the wire format."""
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(item.to_dict() for item in history)
        messages.append({"role": "user", "content": message})
        return messages

    async def complete(self, system_prompt: str, history: Sequence[Message], message: str) -> str:
        """Return the model's reply text.

        Args:
            system_prompt: Instructions and current session summary.
            history: Prior-turn messages, oldest first.
            message: The current user message.

        Raises:
            ChatGatewayError: if the API call fails for any reason.
        """
        start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(system_prompt, history, message),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as exc:
            LOGGER.error("OpenAI Chat Completions error: %s", exc)
            raise ChatGatewayError(str(exc)) from exc

        latency = time.time() - start
        usage = extract_usage(response)
        LOGGER.info(
            "Chat completion latency: %.3fs (prompt_tokens=%s completion_tokens=%s)",
            latency,
            usage["prompt_tokens"],
            usage["completion_tokens"],
        )
        return extract_message_text(response)
