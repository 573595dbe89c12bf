"""
Conversation state storage.

Хранилище состояния диалога: по одной записи на пользователя,
обновление с поверхностным слиянием полей.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import ConversationState


class StateStore(ABC):
    """Key-addressable store of per-user conversation state."""

    @abstractmethod
    async def get(self, user_id: int) -> Optional[ConversationState]:
        raise NotImplementedError

    @abstractmethod
    async def set(self, user_id: int, **fields: Any) -> ConversationState:
        """Overwrite only the given fields, keeping the rest of the record."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, user_id: int) -> None:
        raise NotImplementedError


class MemoryStateStore(StateStore):
    """In-process table. No expiry: entries live until deleted or restart."""

    def __init__(self) -> None:
        self._states: Dict[int, ConversationState] = {}

    async def get(self, user_id: int) -> Optional[ConversationState]:
        return self._states.get(user_id)

    async def set(self, user_id: int, **fields: Any) -> ConversationState:
        current = self._states.get(user_id)
        merged = current.model_dump() if current is not None else {}
        merged.update(fields)
        state = ConversationState.model_validate(merged)
        self._states[user_id] = state
        return state

    async def delete(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._states)


__all__ = ["StateStore", "MemoryStateStore"]
