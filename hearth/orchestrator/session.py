"""
Per-user sessions.

A session is the bounded window of recent turns used to build prompts,
plus the lock that serialises one user's turns. It is a cache: the
store holds the full history and a session can always be rebuilt from it.

Locks are per user, so different users never wait on each other.
asyncio.Lock wakes waiters in FIFO order, which keeps one user's turns
in arrival order.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterable, TypeVar

from ..models.conversation import ConversationTurn
from ..services.store import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Session:
    """One user's conversation window."""

    def __init__(self, user_id: str, max_history: int):
        self.user_id = user_id
        self.max_history = max_history
        self.recent_turns: deque[ConversationTurn] = deque(maxlen=max_history)
        self.lock = asyncio.Lock()
        self.loaded = False

    def history(self) -> list[ConversationTurn]:
        return list(self.recent_turns)

    def messages(self) -> list[dict]:
        """History as chat messages, oldest first."""
        return [turn.as_message() for turn in self.recent_turns]

    def append(self, turn: ConversationTurn) -> None:
        # deque(maxlen) drops the oldest turn from the window only
        self.recent_turns.append(turn)

    def extend(self, turns: Iterable[ConversationTurn]) -> None:
        for turn in turns:
            self.append(turn)

    def reset(self, turns: Iterable[ConversationTurn] = ()) -> None:
        self.recent_turns.clear()
        self.extend(turns)

    def __len__(self) -> int:
        return len(self.recent_turns)


class SessionManager:
    """Hands out exclusive, lazily loaded sessions keyed by user id."""

    def __init__(self, store: Store, max_history: int = 50):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.store = store
        self.max_history = max_history
        self._sessions: dict[str, Session] = {}

    def _get_or_create(self, user_id: str) -> Session:
        # No await between lookup and insert
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(user_id, self.max_history)
            self._sessions[user_id] = session
        return session

    @asynccontextmanager
    async def session(self, user_id: str) -> AsyncIterator[Session]:
        """Exclusive access to a user's session; released on every exit path."""
        session = self._get_or_create(user_id)
        async with session.lock:
            if not session.loaded:
                turns = await self.store.load_recent_turns(user_id, self.max_history)
                session.reset(turns)
                session.loaded = True
                logger.debug("Loaded session for %s (%d turns)", user_id, len(turns))
            yield session

    async def with_session(
        self,
        user_id: str,
        fn: Callable[[Session], Awaitable[T]],
    ) -> T:
        async with self.session(user_id) as session:
            return await fn(session)

    async def invalidate(self, user_id: str) -> None:
        """Drop the cached window; the next turn reloads it from the store."""
        session = self._sessions.get(user_id)
        if session is None:
            return
        async with session.lock:
            session.reset()
            session.loaded = False
        logger.info("Session cache invalidated for %s", user_id)

    def active_users(self) -> list[str]:
        return sorted(self._sessions)
