"""Key derivation for the ratchet chains.

Two functions:
    - kdf_split: root step, HKDF over a DH output keyed by the root key,
      yielding a new root key and a chain key.
    - kdf_to_symmetric: HMAC of a chain key over a label, used both for
      message keys and for advancing the chain.
"""

from typing import Tuple

from cryptography.hazmat.primitives import hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256

from .types import KEY_SIZE, RATCHET_LABEL, MESSAGE_LABEL, CHAIN_LABEL


def kdf_split(root_key: bytes, dh_output: bytes, label: bytes = RATCHET_LABEL) -> Tuple[bytes, bytes]:
    """Derive a new root key and chain key.

    Args:
        root_key: The current root key (32 bytes), used as HKDF salt.
        dh_output: The X25519 shared secret (32 bytes).
        label: Domain separation label.

    Returns:
        Tuple of (root_key, chain_key), 32 bytes each.
    """
    hkdf = HKDF(
        algorithm=SHA256(),
        length=2 * KEY_SIZE,
        salt=root_key,
        info=label,
    )
    output = hkdf.derive(dh_output)
    return output[:KEY_SIZE], output[KEY_SIZE:]


def kdf_to_symmetric(key: bytes, label: bytes) -> bytes:
    """Derive a 32-byte key as HMAC-SHA256(key, label)."""
    h = hmac.HMAC(key, SHA256())
    h.update(label)
    return h.finalize()


def derive_message_key(chain_key: bytes) -> bytes:
    """Message key for the current position of a chain."""
    return kdf_to_symmetric(chain_key, MESSAGE_LABEL)


def derive_next_chain_key(chain_key: bytes) -> bytes:
    """Next chain key; the previous one cannot be recovered from it."""
    return kdf_to_symmetric(chain_key, CHAIN_LABEL)
