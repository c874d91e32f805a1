"""Symmetric and Diffie-Hellman ratchet steps, and per-message encrypt/decrypt.

Both ratchet_encrypt and ratchet_decrypt take a committed session and return
a new one; the input session is never modified. A caller that stores the
returned session only on success gets all-or-nothing state updates.
"""

import logging
from typing import Tuple

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey

from . import replay
from .crypto import aead_encrypt, aead_decrypt, generate_nonce
from .escrow import wrap_message_key
from .header import EncryptedMessage, MessageHeader
from .kdf import kdf_split, derive_message_key, derive_next_chain_key
from .keys import generate_keypair, x25519_ecdh, public_key_from_bytes, key_fingerprint
from .session import RatchetSession
from .skipped_keys import skip_to, try_consume
from .types import MAX_SKIP, MAX_SKIPPED_KEYS, DecryptionFailed, EscrowChatError

logger = logging.getLogger(__name__)


def advance_chain(chain_key: bytes) -> Tuple[bytes, bytes]:
    """Derive the message key for a chain position and the next chain key.

    Args:
        chain_key: The current chain key (32 bytes).

    Returns:
        Tuple of (message_key, next_chain_key).
    """
    return derive_message_key(chain_key), derive_next_chain_key(chain_key)


def dh_ratchet(session: RatchetSession, remote_public_key: bytes) -> None:
    """Adopt the peer's new ratchet key and re-derive both chains.

    Mutates `session`. Messages left on the old receiving chain must already
    be cached with skip_to.

    Raises:
        DecryptionFailed: If the peer key cannot be used for key agreement.
    """
    try:
        dh_remote = public_key_from_bytes(remote_public_key)
        receive_dh = x25519_ecdh(session.dh_pair, dh_remote)
    except ValueError as e:
        raise DecryptionFailed(f"Unusable ratchet public key: {e}") from e

    session.previous_chain_length = session.send_counter
    session.send_counter = 0
    session.receive_counter = 0
    session.dh_remote = dh_remote
    session.root_key, session.receive_chain_key = kdf_split(session.root_key, receive_dh)

    session.dh_pair, _ = generate_keypair()
    send_dh = x25519_ecdh(session.dh_pair, dh_remote)
    session.root_key, session.send_chain_key = kdf_split(session.root_key, send_dh)

    logger.debug("DH ratchet step (previous chain length %d)", session.previous_chain_length)


def ratchet_encrypt(
    session: RatchetSession,
    plaintext: str,
    escrow_public_key: X25519PublicKey,
) -> Tuple[EncryptedMessage, RatchetSession]:
    """Encrypt a message on the sending chain.

    Args:
        session: The committed session (not modified).
        plaintext: Message text.
        escrow_public_key: The escrow authority's public key.

    Returns:
        Tuple of (encrypted_message, updated_session).
    """
    if session.send_chain_key is None:
        raise EscrowChatError("Sending chain not established")

    state = session.copy()
    message_key, state.send_chain_key = advance_chain(state.send_chain_key)

    escrowed = wrap_message_key(message_key, escrow_public_key)
    header = MessageHeader(
        ratchet_public_key=state.dh_public_bytes,
        previous_chain_length=state.previous_chain_length,
        counter=state.send_counter,
        escrow_ephemeral_public_key=escrowed.ephemeral_public_key,
        escrow_ciphertext=escrowed.ciphertext,
        escrow_nonce=escrowed.nonce,
        message_nonce=generate_nonce(),
    )
    state.send_counter += 1

    ciphertext = aead_encrypt(
        message_key,
        plaintext.encode("utf-8"),
        header.message_nonce,
        header.associated_data(),
    )
    return EncryptedMessage(header=header, ciphertext=ciphertext), state


def ratchet_decrypt(
    session: RatchetSession,
    header: MessageHeader,
    ciphertext: bytes,
    max_skip: int = MAX_SKIP,
    max_skipped_keys: int = MAX_SKIPPED_KEYS,
) -> Tuple[str, RatchetSession]:
    """Decrypt a message, ratcheting forward as the header requires.

    Args:
        session: The committed session (not modified).
        header: The received header.
        ciphertext: The received payload ciphertext.
        max_skip: Maximum keys to skip on one chain.
        max_skipped_keys: Bound on the skipped key cache.

    Returns:
        Tuple of (plaintext, updated_session).

    Raises:
        ReplayDetected: If the message was already accepted.
        TooManySkippedMessages: If the header counter is too far ahead.
        DecryptionFailed: If authentication fails.
    """
    fingerprint = key_fingerprint(header.ratchet_public_key)
    replay.check_and_reject(session, fingerprint, header.counter)

    associated_data = header.associated_data()
    state = session.copy()

    message_key = try_consume(state, fingerprint, header.counter)
    if message_key is not None:
        logger.debug("Using skipped message key for counter %d", header.counter)
    else:
        if state.dh_remote_bytes != header.ratchet_public_key:
            skip_to(state, header.previous_chain_length, max_skip, max_skipped_keys)
            dh_ratchet(state, header.ratchet_public_key)

        skip_to(state, header.counter, max_skip, max_skipped_keys)
        if state.receive_chain_key is None:
            raise DecryptionFailed("Receiving chain not established")

        message_key, state.receive_chain_key = advance_chain(state.receive_chain_key)
        state.receive_counter += 1

    plaintext = aead_decrypt(message_key, ciphertext, header.message_nonce, associated_data)
    replay.record(state, fingerprint, header.counter)

    return plaintext.decode("utf-8"), state
