"""Per-peer ratchet session storage."""

import threading
from typing import Optional

from ..session import RatchetSession


class SessionStore:
    """In-memory map of username to its single ratchet session.

    Each peer has one lock. Callers hold it across read, update and
    put_session so that concurrent sends and receives for the same peer are
    serialized, while different peers proceed independently.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RatchetSession] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, username: str) -> threading.Lock:
        """The lock guarding a peer's session."""
        with self._locks_guard:
            lock = self._locks.get(username)
            if lock is None:
                lock = threading.Lock()
                self._locks[username] = lock
            return lock

    def get_session(self, username: str) -> Optional[RatchetSession]:
        """The committed session for a peer, if any."""
        return self._sessions.get(username)

    def put_session(self, username: str, session: RatchetSession) -> None:
        """Commit the state of a peer's session, replacing the previous one."""
        self._sessions[username] = session

    def has_session(self, username: str) -> bool:
        """Check if a session exists for a peer."""
        return username in self._sessions

    def list_peers(self) -> list[str]:
        """All peers with a session."""
        return list(self._sessions.keys())
