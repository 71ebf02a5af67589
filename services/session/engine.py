"""Session state engine: one read-modify-write turn per inbound message."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence, Tuple

from dal.session_state_dal import StoreUnavailableError
from models.session_models import Message, SessionState
from services.session.conversation_log import ConversationLog
from services.session.intent_router import (
	AddTask,
	Chat,
	CompleteTask,
	DeleteTask,
	IntentRouter,
	ListTasks,
)
from services.session.keyed_lock import KeyedLock
from services.session.prompts import assistant_system_prompt
from services.session.task_registry import TaskNotFoundError, TaskRegistry

LOGGER = logging.getLogger(__name__)

ADD_TASK_HINT = "I'd be happy to add a task! Please tell me what the task is. For example: 'Add task: Buy groceries'"
COMPLETE_TASK_HINT = "Please specify which task to complete by number. For example: 'Complete task 1'"
DELETE_TASK_HINT = "Please specify which task to delete by number. For example: 'Delete task 1'"
EMPTY_COMPLETION_REPLY = "I'm not sure how to respond to that."
GATEWAY_FAILURE_REPLY = "I'm having trouble processing that right now. Please try again."


class KeyedStore(Protocol):
	async def get(self, session_key: str) -> Optional[str]: ...

	async def put(self, session_key: str, blob: str) -> None: ...


class ChatGateway(Protocol):
	async def complete(self, system_prompt: str, history: Sequence[Message], message: str) -> str: ...


@dataclass(frozen=True)
class EngineSettings:
	history_limit: int = 10
	context_window: int = 4


def decode_state(blob: str) -> SessionState:
	"""Parse a stored blob; malformed data is a store failure, not an empty session."""
	try:
		data = json.loads(blob)
		if not isinstance(data, dict):
			raise ValueError("stored state is not a JSON object")
		return SessionState.from_dict(data)
	except (ValueError, KeyError, TypeError) as exc:
		raise StoreUnavailableError(f"Stored session state is unreadable: {exc}") from exc


def encode_state(state: SessionState) -> str:
	return json.dumps(state.to_dict(), ensure_ascii=False)


class SessionEngine:
	"""Own the per-session turn: load, classify, apply, append, persist, reply.

	Turns for the same session key are serialized through a per-key lock held
	for the whole turn; turns for different keys never wait on each other.
	"""

	def __init__(
		self,
		store: KeyedStore,
		gateway: ChatGateway,
		settings: Optional[EngineSettings] = None,
		router: Optional[IntentRouter] = None,
	) -> None:
		if store is None:
			raise ValueError("A keyed store is required.")
		if gateway is None:
			raise ValueError("A chat gateway is required.")
		self.store = store
		self.gateway = gateway
		self.settings = settings or EngineSettings()
		self.router = router or IntentRouter()
		self._locks = KeyedLock()
		self._handlers: Dict[type, Callable[[SessionState, Any, ConversationLog], Awaitable[str]]] = {
			AddTask: self._handle_add,
			ListTasks: self._handle_list,
			CompleteTask: self._handle_complete,
			DeleteTask: self._handle_delete,
			Chat: self._handle_chat,
		}

	async def handle_turn(self, session_key: str, user_message: str) -> str:
		"""Process one inbound message for `session_key` and return the reply.

		Raises:
			StoreUnavailableError: if the state cannot be loaded or persisted.
		"""
		async with self._locks.hold(session_key):
			state = await self.load(session_key)
			state, reply = await self.apply_turn(state, user_message, session_key=session_key)
			await self.save(session_key, state)
			return reply

	async def load(self, session_key: str) -> SessionState:
		blob = await self.store.get(session_key)
		if blob is None:
			return SessionState()
		return decode_state(blob)

	async def save(self, session_key: str, state: SessionState) -> None:
		await self.store.put(session_key, encode_state(state))

	async def apply_turn(
		self,
		state: SessionState,
		user_message: str,
		session_key: str = "",
	) -> Tuple[SessionState, str]:
		"""Run steps 2-5 of a turn on `state` and return it with the reply."""
		log = ConversationLog(state.history)
		log.append_user(user_message)

		intent = self.router.classify(user_message)
		LOGGER.info("Session %s intent=%s", session_key, type(intent).__name__)
		reply = await self._handlers[type(intent)](state, intent, log)

		log.append_assistant(reply)
		log.truncate_to_last(self.settings.history_limit)
		return state, reply

	async def _handle_add(self, state: SessionState, intent: AddTask, log: ConversationLog) -> str:
		if not intent.title:
			return ADD_TASK_HINT
		task = TaskRegistry(state.tasks).add(intent.title)
		return f'✅ Task added: "{task.title}"'

	async def _handle_list(self, state: SessionState, intent: ListTasks, log: ConversationLog) -> str:
		return TaskRegistry(state.tasks).list_formatted()

	async def _handle_complete(self, state: SessionState, intent: CompleteTask, log: ConversationLog) -> str:
		if intent.ordinal is None:
			return COMPLETE_TASK_HINT
		try:
			task = TaskRegistry(state.tasks).complete_by_ordinal(intent.ordinal)
		except TaskNotFoundError as exc:
			return str(exc)
		return f'✓ Completed: "{task.title}"'

	async def _handle_delete(self, state: SessionState, intent: DeleteTask, log: ConversationLog) -> str:
		if intent.ordinal is None:
			return DELETE_TASK_HINT
		try:
			task = TaskRegistry(state.tasks).delete_by_ordinal(intent.ordinal)
		except TaskNotFoundError as exc:
			return str(exc)
		return f'🗑️ Deleted: "{task.title}"'

	async def _handle_chat(self, state: SessionState, intent: Chat, log: ConversationLog) -> str:
		registry = TaskRegistry(state.tasks)
		system_prompt = assistant_system_prompt(len(registry.active()), len(registry.completed()))
		window = log.recent_context(self.settings.context_window)
		user_message = log.messages[-1].content
		try:
			text = await self.gateway.complete(system_prompt, window, user_message)
		except Exception as exc:
			LOGGER.error("LLM gateway failed: %s", exc)
			return GATEWAY_FAILURE_REPLY
		return text or EMPTY_COMPLETION_REPLY
