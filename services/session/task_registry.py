"""Ordered task collection for one session, with active/completed partitioning."""

from __future__ import annotations

import time
from typing import Callable, List
from uuid import uuid4

from models.session_models import Task

EMPTY_LIST_REPLY = "You don't have any tasks yet. Try adding one by saying 'Add task: Your task description'"


class TaskNotFoundError(LookupError):
	"""Raised when an ordinal does not address a current active task."""

	def __init__(self, ordinal: int, active_count: int) -> None:
		self.ordinal = ordinal
		self.active_count = active_count
		super().__init__(f"Task {ordinal} not found. You have {active_count} active tasks.")


def _clock_ms() -> int:
	return int(time.time() * 1000)


class TaskRegistry:
	"""Add, list, complete, and delete tasks on a session's task list.

	Ordinals are 1-based positions in the *current* active subsequence and are
	recomputed on every call; only `Task.id` is stable.
	"""

	def __init__(self, tasks: List[Task], clock: Callable[[], int] = _clock_ms) -> None:
		self.tasks = tasks
		self._clock = clock

	def active(self) -> List[Task]:
		return [task for task in self.tasks if not task.completed]

	def completed(self) -> List[Task]:
		return [task for task in self.tasks if task.completed]

	def add(self, title: str) -> Task:
		"""Append a new active task and return it."""
		title = title.strip()
		if not title:
			raise ValueError("Task title must not be empty.")
		now = self._clock()
		task = Task(id=self._next_id(now), title=title, completed=False, created_at=now)
		self.tasks.append(task)
		return task

	def list_formatted(self) -> str:
		"""Render active then completed tasks, each numbered from 1."""
		if not self.tasks:
			return EMPTY_LIST_REPLY

		active = self.active()
		completed = self.completed()

		lines = ["📋 Your Tasks:", ""]
		if active:
			lines.append("Active:")
			lines.extend(f"{index}. {task.title}" for index, task in enumerate(active, start=1))
		if completed:
			lines.append("")
			lines.append("✓ Completed:")
			lines.extend(f"{index}. {task.title}" for index, task in enumerate(completed, start=1))
		return "\n".join(lines) + "\n"

	def complete_by_ordinal(self, ordinal: int) -> Task:
		"""Mark the `ordinal`-th active task completed, in place."""
		task = self._resolve(ordinal)
		task.completed = True
		return task

	def delete_by_ordinal(self, ordinal: int) -> Task:
		"""Remove the `ordinal`-th active task from the task list."""
		task = self._resolve(ordinal)
		self.tasks[:] = [t for t in self.tasks if t.id != task.id]
		return task

	def _resolve(self, ordinal: int) -> Task:
		active = self.active()
		if ordinal < 1 or ordinal > len(active):
			raise TaskNotFoundError(ordinal, len(active))
		return active[ordinal - 1]

	def _next_id(self, now: int) -> str:
		return f"task-{now}-{uuid4().hex[:8]}"
