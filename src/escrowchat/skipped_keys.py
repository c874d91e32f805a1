"""Skipped message keys for out-of-order and lost messages."""

import logging
from typing import Optional

from .kdf import derive_message_key, derive_next_chain_key
from .session import RatchetSession
from .types import MAX_SKIP, MAX_SKIPPED_KEYS, TooManySkippedMessages

logger = logging.getLogger(__name__)


def skip_to(
    session: RatchetSession,
    until: int,
    max_skip: int = MAX_SKIP,
    max_skipped_keys: int = MAX_SKIPPED_KEYS,
) -> None:
    """Derive and cache receiving-chain keys for every counter below `until`.

    Args:
        session: The session to advance (mutated in place).
        until: The counter the receiving chain should reach.
        max_skip: Maximum number of keys one call may derive.
        max_skipped_keys: Maximum number of cached keys across all chains;
            the oldest are evicted beyond it.

    Raises:
        TooManySkippedMessages: If `until` is more than `max_skip` ahead.
    """
    if until - session.receive_counter > max_skip:
        raise TooManySkippedMessages(until - session.receive_counter, max_skip)

    if session.receive_chain_key is None:
        return

    fingerprint = session.dh_remote_fingerprint
    skipped = 0
    while session.receive_counter < until:
        chain_key = session.receive_chain_key
        session.skipped_keys[(fingerprint, session.receive_counter)] = derive_message_key(chain_key)
        session.receive_chain_key = derive_next_chain_key(chain_key)
        session.receive_counter += 1
        skipped += 1

    if skipped:
        logger.debug("Cached %d skipped message keys", skipped)

    while len(session.skipped_keys) > max_skipped_keys:
        oldest = next(iter(session.skipped_keys))
        del session.skipped_keys[oldest]
        logger.debug("Evicted skipped message key for counter %d", oldest[1])


def try_consume(session: RatchetSession, fingerprint: bytes, counter: int) -> Optional[bytes]:
    """Remove and return the cached key for (fingerprint, counter), if any."""
    return session.skipped_keys.pop((fingerprint, counter), None)
