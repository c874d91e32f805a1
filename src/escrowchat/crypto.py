"""Authenticated encryption for escrowchat payloads and escrowed keys."""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .types import NONCE_SIZE, DecryptionFailed


def generate_nonce() -> bytes:
    """Fresh random 12-byte nonce."""
    return os.urandom(NONCE_SIZE)


def aead_encrypt(
    key: bytes,
    plaintext: bytes,
    nonce: bytes,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """
    Encrypt with ChaCha20-Poly1305.

    Args:
        key: 32-byte symmetric key
        plaintext: Data to encrypt
        nonce: 12-byte nonce, never reused with the same key
        associated_data: Authenticated but unencrypted data

    Returns:
        Ciphertext with the 16-byte tag appended
    """
    cipher = ChaCha20Poly1305(key)
    return cipher.encrypt(nonce, plaintext, associated_data)


def aead_decrypt(
    key: bytes,
    ciphertext: bytes,
    nonce: bytes,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """
    Decrypt with ChaCha20-Poly1305.

    Raises:
        DecryptionFailed: If authentication fails
    """
    cipher = ChaCha20Poly1305(key)
    try:
        return cipher.decrypt(nonce, ciphertext, associated_data)
    except InvalidTag as e:
        raise DecryptionFailed("Message authentication failed") from e
