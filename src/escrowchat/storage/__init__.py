"""escrowchat storage module."""

from .trust_store import TrustStore, TrustedPeer
from .session_store import SessionStore

__all__ = [
    "TrustStore",
    "TrustedPeer",
    "SessionStore",
]
