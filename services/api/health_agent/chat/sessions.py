"""In-memory chat history keyed by session id.

Each session has its own re-entrant lock, created under a short registry
lock, so turns for different sessions never contend. History is bounded and
evicts the oldest turn first.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Dict, Iterator, Optional, Tuple

from health_agent.config import settings
from health_agent.errors import InvalidInput
from health_agent.models import ChatRole, ChatTurn

logger = logging.getLogger(__name__)

Mirror = Callable[[str, ChatTurn], None]


class ChatSessionStore:
    def __init__(self, limit: Optional[int] = None, mirror: Optional[Mirror] = None) -> None:
        self.limit = limit if limit is not None else settings.chat_history_limit
        if self.limit <= 0:
            raise ValueError("Chat history limit must be positive")
        self._mirror = mirror
        self._registry_lock = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._turns: Dict[str, Deque[ChatTurn]] = {}

    def _session_lock(self, session_id: str) -> threading.RLock:
        if not session_id or not session_id.strip():
            raise InvalidInput("A chat session id is required.")
        with self._registry_lock:
            lock = self._locks.get(session_id)
            if lock is None:
                logger.debug("Opening chat session %s", session_id)
                lock = threading.RLock()
                self._locks[session_id] = lock
                self._turns[session_id] = deque(maxlen=self.limit)
            return lock

    @contextmanager
    def locked(self, session_id: str) -> Iterator[None]:
        """Hold the session lock across a multi-step turn."""
        lock = self._session_lock(session_id)
        with lock:
            yield

    def append_turn(self, session_id: str, role: ChatRole | str, text: str) -> Tuple[ChatTurn, ...]:
        try:
            turn = ChatTurn(role=ChatRole(role), text=text)
        except ValueError as exc:
            raise InvalidInput(f"Unknown chat role '{role}'.") from exc
        with self._session_lock(session_id):
            turns = self._turns[session_id]
            turns.append(turn)
            snapshot = tuple(turns)
            if self._mirror is not None:
                self._mirror(session_id, turn)
        return snapshot

    def get_context(self, session_id: str) -> Tuple[ChatTurn, ...]:
        """Snapshot of a session's turns; unknown ids read as empty and are not opened."""
        with self._registry_lock:
            lock = self._locks.get(session_id)
        if lock is None:
            return ()
        with lock:
            return tuple(self._turns[session_id])

    def session_ids(self) -> Tuple[str, ...]:
        with self._registry_lock:
            return tuple(self._turns)
