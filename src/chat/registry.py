"""Process-wide directory of chat sessions and in-flight requests.

One registry is constructed at start-up and handed to every request
handler. The session map, the pending set and the set of identities handed
out by ``generate_identity`` share a single lock.
"""

from __future__ import annotations

import logging
import random
import threading
from pathlib import Path

from src.chat.session import Session, SessionFactory
from src.chat.transcript import transcript_path

logger = logging.getLogger(__name__)

_MAX_RESERVED = 10_000  # oldest unused reservations are released first


class SessionRegistry:
    """Maps chat identity to Session and tracks pending identities.

    Identities returned by ``generate_identity`` stay reserved until they
    are resolved. At most ``max_reserved`` unused reservations are kept.
    Past that the oldest is released and may be handed out again.
    """

    def __init__(
        self,
        factory: SessionFactory,
        data_dir: Path | None = None,
        id_floor: int = 1000,
        id_span: int = 899999,
        rng: random.Random | None = None,
        max_reserved: int = _MAX_RESERVED,
    ) -> None:
        if id_span <= 0:
            raise ValueError(f"Identity span must be positive, got {id_span}")
        self._factory = factory
        self._data_dir = data_dir
        self._id_floor = id_floor
        self._id_span = id_span
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._sessions: dict[int, Session] = {}
        self._pending: set[int] = set()
        self._max_reserved = max_reserved
        self._allocated: dict[int, None] = {}

    def resolve(self, chat_id: int, create_if_absent: bool = True) -> Session | None:
        """Return the session for ``chat_id``, creating it if requested."""
        if create_if_absent:
            return self.session(chat_id)
        with self._lock:
            return self._sessions.get(chat_id)

    def session(self, chat_id: int) -> Session:
        """Return the session for ``chat_id``, creating it on first use."""
        with self._lock:
            session = self._sessions.get(chat_id)
            if session is None:
                session = self._factory(chat_id)
                self._sessions[chat_id] = session
                self._allocated.pop(chat_id, None)
            return session

    def generate_identity(self) -> int:
        """Return a fresh identity that no session, allocation or file uses."""
        with self._lock:
            while True:
                candidate = self._id_floor + self._rng.randrange(self._id_span)
                if candidate in self._allocated:
                    continue
                if self.resolve(candidate, create_if_absent=False) is not None:
                    continue
                if self._data_dir is not None and transcript_path(self._data_dir, candidate).exists():
                    continue
                self._allocated[candidate] = None
                if len(self._allocated) > self._max_reserved:
                    del self._allocated[next(iter(self._allocated))]
                logger.debug("Allocated chat identity %d", candidate)
                return candidate

    def try_begin(self, chat_id: int) -> bool:
        """Mark ``chat_id`` pending. Returns False if it already was."""
        with self._lock:
            if chat_id in self._pending:
                return False
            self._pending.add(chat_id)
            return True

    def end(self, chat_id: int) -> None:
        with self._lock:
            self._pending.discard(chat_id)

    def is_pending(self, chat_id: int) -> bool:
        with self._lock:
            return chat_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
