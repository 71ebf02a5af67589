"""Keyword classification of inbound messages into task intents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

TITLE_PATTERNS: Tuple[re.Pattern, ...] = (
	re.compile(r"add task[:\s]+(.+)", re.IGNORECASE),
	re.compile(r"create task[:\s]+(.+)", re.IGNORECASE),
	re.compile(r"add[:\s]+(.+)", re.IGNORECASE),
)

ORDINAL_PATTERN = re.compile(r"[0-9]+")

# Longer digit runs cannot address a task; they are clamped so the reply still
# reports "not found" instead of converting an unbounded string.
MAX_ORDINAL_DIGITS = 18
OUT_OF_RANGE_ORDINAL = 10 ** MAX_ORDINAL_DIGITS


@dataclass(frozen=True)
class AddTask:
	title: Optional[str]


@dataclass(frozen=True)
class ListTasks:
	pass


@dataclass(frozen=True)
class CompleteTask:
	ordinal: Optional[int]


@dataclass(frozen=True)
class DeleteTask:
	ordinal: Optional[int]


@dataclass(frozen=True)
class Chat:
	pass


Intent = Union[AddTask, ListTasks, CompleteTask, DeleteTask, Chat]


def extract_title(message: str) -> Optional[str]:
	"""Return the title captured by the first matching add pattern.

	A blank capture means the user gave no title; later patterns are not tried.
	"""
	for pattern in TITLE_PATTERNS:
		match = pattern.search(message)
		if match:
			return match.group(1).strip() or None
	return None


def extract_ordinal(message: str) -> Optional[int]:
	"""Return the first ASCII integer literal in the message, if any."""
	match = ORDINAL_PATTERN.search(message)
	if not match:
		return None
	digits = match.group(0).lstrip("0") or "0"
	if len(digits) > MAX_ORDINAL_DIGITS:
		return OUT_OF_RANGE_ORDINAL
	return int(digits)


@dataclass(frozen=True)
class IntentRule:
	"""One row of the routing table: trigger phrases and an intent builder."""

	name: str
	keywords: Tuple[str, ...]
	build: Callable[[str], Intent]

	def matches(self, lowered: str) -> bool:
		return any(keyword in lowered for keyword in self.keywords)


DEFAULT_RULES: Tuple[IntentRule, ...] = (
	IntentRule("add", ("add task", "create task"), lambda msg: AddTask(extract_title(msg))),
	IntentRule("list", ("list task", "show task", "what tasks"), lambda msg: ListTasks()),
	IntentRule("complete", ("complete task", "finish task"), lambda msg: CompleteTask(extract_ordinal(msg))),
	IntentRule("delete", ("delete task", "remove task"), lambda msg: DeleteTask(extract_ordinal(msg))),
)


class IntentRouter:
	"""Evaluate rules in priority order; the first match wins, else `Chat`."""

	def __init__(self, rules: Sequence[IntentRule] = DEFAULT_RULES) -> None:
		self.rules = tuple(rules)

	def classify(self, message: str) -> Intent:
		lowered = message.lower()
		for rule in self.rules:
			if rule.matches(lowered):
				return rule.build(message)
		return Chat()
