"""Session domain models for the task assistant."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

ROLES = ("user", "assistant", "system")


def _now_ms() -> int:
	return int(time.time() * 1000)


@dataclass(frozen=True)
class Message:
	"""One entry of a session's conversation history."""

	role: str
	content: str

	def __post_init__(self) -> None:
		if self.role not in ROLES:
			raise ValueError(f"Unknown message role: {self.role!r}")

	def to_dict(self) -> Dict[str, str]:
		return {"role": self.role, "content": self.content}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Message":
		return cls(role=data["role"], content=data["content"])


@dataclass
class Task:
	"""A user task. `id` is the only stable identity; display ordinals are not."""

	id: str
	title: str
	completed: bool = False
	created_at: int = field(default_factory=_now_ms)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"title": self.title,
			"completed": self.completed,
			"createdAt": self.created_at,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Task":
		return cls(
			id=str(data["id"]),
			title=str(data["title"]),
			completed=bool(data["completed"]),
			created_at=int(data["createdAt"]),
		)


@dataclass
class SessionState:
	"""Durable state of one session: history, tasks, and free-form context."""

	history: List[Message] = field(default_factory=list)
	tasks: List[Task] = field(default_factory=list)
	context: Dict[str, Any] = field(default_factory=dict)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"history": [msg.to_dict() for msg in self.history],
			"tasks": [task.to_dict() for task in self.tasks],
			"context": dict(self.context),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "SessionState":
		return cls(
			history=[Message.from_dict(item) for item in data.get("history", [])],
			tasks=[Task.from_dict(item) for item in data.get("tasks", [])],
			context=dict(data.get("context") or {}),
		)
