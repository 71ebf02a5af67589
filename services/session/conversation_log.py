"""Bounded conversation history for a single session."""

from __future__ import annotations

from typing import List, Optional

from models.session_models import Message


class ConversationLog:
	"""Append-only view over a session's history list.

	The log mutates the list it wraps, so the owning `SessionState` sees every
	append and truncation.
	"""

	def __init__(self, messages: List[Message]) -> None:
		self.messages = messages
		self._turn_start: Optional[int] = None

	def __len__(self) -> int:
		return len(self.messages)

	def append(self, message: Message) -> None:
		"""Add a message to the end of the history."""
		self.messages.append(message)

	def append_user(self, content: str) -> Message:
		"""Record the user message that opens the current turn."""
		self._turn_start = len(self.messages)
		message = Message(role="user", content=content)
		self.append(message)
		return message

	def append_assistant(self, content: str) -> Message:
		message = Message(role="assistant", content=content)
		self.append(message)
		return message

	def truncate_to_last(self, limit: int) -> None:
		"""Keep only the final `limit` entries, dropping the oldest first."""
		if limit <= 0:
			self.messages.clear()
		elif len(self.messages) > limit:
			del self.messages[:-limit]
		self._turn_start = None

	def recent_context(self, limit: int = 4) -> List[Message]:
		"""Return up to `limit` messages from prior turns.

		The user message that opened the current turn is excluded, since the
		caller sends it separately as the final prompt entry.
		"""
		if limit <= 0:
			return []
		end = self._turn_start if self._turn_start is not None else len(self.messages)
		return list(self.messages[:end][-limit:])
