"""Replay protection keyed by ratchet key fingerprint and counter."""

from .session import RatchetSession
from .types import ReplayDetected


def check_and_reject(session: RatchetSession, fingerprint: bytes, counter: int) -> None:
    """Raise ReplayDetected if this message was already accepted."""
    if (fingerprint, counter) in session.received:
        raise ReplayDetected(counter)


def record(session: RatchetSession, fingerprint: bytes, counter: int) -> None:
    """Mark a message as accepted. Call only after authentication succeeded."""
    session.received.add((fingerprint, counter))
