"""In-process keyed store with the same contract as `SessionStateDAL`."""

from __future__ import annotations

from typing import Dict, Optional


class InMemoryKeyedStore:
    """Dictionary-backed blob store; contents are lost when the process exits."""

    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    async def get(self, session_key: str) -> Optional[str]:
        return self._blobs.get(session_key)

    async def put(self, session_key: str, blob: str) -> None:
        self._blobs[session_key] = blob

    async def delete(self, session_key: str) -> bool:
        return self._blobs.pop(session_key, None) is not None
