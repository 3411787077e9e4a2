import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class ConversationStep:
    AWAITING_PROBLEM = "awaiting_problem"
    AWAITING_ADDRESS = "awaiting_address"
    AWAITING_PHONE = "awaiting_phone"


@dataclass
class ConversationState:
    step: str
    category: str
    region: str
    problem: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class BrowseCursor:
    index: int = 0
    category: Optional[str] = None
    region: Optional[str] = None


def clamp_index(index: int, length: int) -> int:
    """Clamps a list position into [0, length - 1]; 0 for an empty list."""
    if length <= 0 or index < 0:
        return 0
    return min(index, length - 1)


class SessionRegistry:
    """
    Ephemeral per-user state (process lifetime only):
    conversation step, browse cursor and the my-requests/my-responses cursor.
    """

    def __init__(self):
        self._conversations: Dict[str, ConversationState] = {}
        self._browse_cursors: Dict[str, BrowseCursor] = {}
        self._my_cursors: Dict[str, int] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def user_lock(self, user_id: str) -> Iterator[None]:
        """Serialises a read-modify-write of one user's session state."""
        lock = self._lock_for(user_id)
        with lock:
            yield

    # Conversation

    def get_conversation(self, user_id: str) -> Optional[ConversationState]:
        return self._conversations.get(user_id)

    def set_conversation(self, user_id: str, state: ConversationState) -> None:
        self._conversations[user_id] = state
        logger.info(f"Conversation for {user_id}: {state.step}")

    def clear_conversation(self, user_id: str) -> bool:
        removed = self._conversations.pop(user_id, None) is not None
        if removed:
            logger.info(f"Cleared conversation for {user_id}")
        return removed

    # Cursors

    def set_browse_cursor(self, user_id: str, cursor: BrowseCursor) -> None:
        self._browse_cursors[user_id] = cursor

    def get_browse_cursor(self, user_id: str) -> Optional[BrowseCursor]:
        return self._browse_cursors.get(user_id)

    def set_my_cursor(self, user_id: str, index: int) -> None:
        self._my_cursors[user_id] = index

    def get_my_cursor(self, user_id: str) -> int:
        return self._my_cursors.get(user_id, 0)

    def clear_all(self, user_id: str) -> None:
        """Drops every piece of session state for a user (back to main menu)."""
        with self.user_lock(user_id):
            self._conversations.pop(user_id, None)
            self._browse_cursors.pop(user_id, None)
            self._my_cursors.pop(user_id, None)
        # A user with no state needs no lock; the next user_lock creates a fresh one
        with self._registry_lock:
            self._locks.pop(user_id, None)
        logger.info(f"Cleared session state for {user_id}")

    def tracked_users(self) -> int:
        """Number of users currently holding a per-user lock."""
        with self._registry_lock:
            return len(self._locks)
