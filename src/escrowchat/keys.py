"""Key generation, exchange and fingerprints for escrowchat."""

import hashlib
from typing import Tuple

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .types import KEY_DERIVATION_SALT, KEY_DERIVATION_INFO, PUBLIC_KEY_SIZE


def derive_keys_from_seed(seed: bytes) -> Tuple[X25519PrivateKey, X25519PublicKey]:
    """
    Derive X25519 key pair from a 32-byte seed using HKDF-SHA256.

    Args:
        seed: 32-byte seed

    Returns:
        Tuple of (private_key, public_key)
    """
    if len(seed) != 32:
        raise ValueError(f"Seed must be 32 bytes, got {len(seed)}")

    hkdf = HKDF(
        algorithm=SHA256(),
        length=32,
        salt=KEY_DERIVATION_SALT,
        info=KEY_DERIVATION_INFO,
    )
    derived_key = hkdf.derive(seed)

    private_key = X25519PrivateKey.from_private_bytes(derived_key)
    public_key = private_key.public_key()

    return private_key, public_key


def generate_keypair() -> Tuple[X25519PrivateKey, X25519PublicKey]:
    """
    Generate a random X25519 key pair.

    Used for identity keys, ratchet keys and escrow ephemeral keys alike.

    Returns:
        Tuple of (private_key, public_key)
    """
    private_key = X25519PrivateKey.generate()
    public_key = private_key.public_key()
    return private_key, public_key


def x25519_ecdh(private_key: X25519PrivateKey, public_key: X25519PublicKey) -> bytes:
    """
    Perform X25519 ECDH key exchange.

    Args:
        private_key: Our private key
        public_key: Their public key

    Returns:
        32-byte shared secret

    Raises:
        ValueError: If the peer key is a low-order point
    """
    return private_key.exchange(public_key)


def public_key_to_bytes(public_key: X25519PublicKey) -> bytes:
    """Convert X25519 public key to raw bytes."""
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)


def public_key_from_bytes(data: bytes) -> X25519PublicKey:
    """Create X25519 public key from raw bytes."""
    if len(data) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(data)}")
    return X25519PublicKey.from_public_bytes(data)


def key_fingerprint(public_key: bytes) -> bytes:
    """SHA-256 of a raw public key; the fixed-width lookup key for a ratchet key."""
    return hashlib.sha256(public_key).digest()


def display_fingerprint(public_key: bytes) -> str:
    """
    Generate a human-readable fingerprint for a raw public key.

    Args:
        public_key: The raw public key (32 bytes)

    Returns:
        A fingerprint string like "A7B3C9D1 E5F28A4B"
    """
    hash_bytes = hashlib.sha256(public_key).digest()

    hex_bytes = [f"{b:02X}" for b in hash_bytes[:8]]
    groups = [hex_bytes[i] + hex_bytes[i + 1] for i in range(0, 8, 2)]

    return " ".join(groups)
