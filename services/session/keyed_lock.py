"""Per-key asyncio locks that serialize turns for the same session."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class KeyedLock:
	"""Hand out one `asyncio.Lock` per key, dropping it once nobody holds or waits on it.

	`asyncio.Lock` wakes waiters in arrival order, so turns on one key run FIFO.
	Different keys never share a lock.
	"""

	def __init__(self) -> None:
		self._locks: Dict[str, asyncio.Lock] = {}
		self._holders: Dict[str, int] = {}

	def __contains__(self, key: str) -> bool:
		return key in self._locks

	def __len__(self) -> int:
		return len(self._locks)

	@asynccontextmanager
	async def hold(self, key: str) -> AsyncIterator[None]:
		lock = self._locks.get(key)
		if lock is None:
			lock = self._locks[key] = asyncio.Lock()
		self._holders[key] = self._holders.get(key, 0) + 1
		try:
			async with lock:
				yield
		finally:
			self._holders[key] -= 1
			if self._holders[key] == 0:
				del self._holders[key]
				del self._locks[key]
