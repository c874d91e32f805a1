"""
Key escrow for message keys.

Every outbound message key is wrapped for the escrow authority under a
single-use ephemeral X25519 key. The authority recomputes the shared secret
with its fixed private key and recovers that one message key, without taking
part in the session.
"""

from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from .crypto import aead_encrypt, aead_decrypt, generate_nonce
from .header import EncryptedMessage, MessageHeader
from .kdf import kdf_to_symmetric
from .keys import (
    derive_keys_from_seed,
    generate_keypair,
    x25519_ecdh,
    public_key_to_bytes,
    public_key_from_bytes,
)
from .types import ESCROW_LABEL


@dataclass(frozen=True)
class EscrowedKey:
    """A message key wrapped for the escrow authority."""
    ephemeral_public_key: bytes  # 32 bytes
    ciphertext: bytes  # 48 bytes (32 + 16 tag)
    nonce: bytes  # 12 bytes


def wrap_message_key(message_key: bytes, escrow_public_key: X25519PublicKey) -> EscrowedKey:
    """
    Encrypt a message key for the escrow authority.

    Args:
        message_key: The raw 32-byte message key
        escrow_public_key: The authority's fixed public key

    Returns:
        EscrowedKey carried in the message header
    """
    ephemeral_private, ephemeral_public = generate_keypair()

    shared_secret = x25519_ecdh(ephemeral_private, escrow_public_key)
    escrow_key = kdf_to_symmetric(shared_secret, ESCROW_LABEL)

    nonce = generate_nonce()
    ciphertext = aead_encrypt(escrow_key, message_key, nonce)

    return EscrowedKey(
        ephemeral_public_key=public_key_to_bytes(ephemeral_public),
        ciphertext=ciphertext,
        nonce=nonce,
    )


def unwrap_message_key(
    escrow_private_key: X25519PrivateKey,
    ephemeral_public_key: bytes,
    ciphertext: bytes,
    nonce: bytes,
) -> bytes:
    """
    Recover a message key with the authority's private key.

    Raises:
        DecryptionFailed: If the escrow ciphertext does not authenticate
    """
    shared_secret = x25519_ecdh(escrow_private_key, public_key_from_bytes(ephemeral_public_key))
    escrow_key = kdf_to_symmetric(shared_secret, ESCROW_LABEL)
    return aead_decrypt(escrow_key, ciphertext, nonce)


class EscrowAuthority:
    """
    Holder of the escrow private key.

    Example usage:
        ```python
        authority = EscrowAuthority()
        alice = MessengerClient(ca.public_key, authority.public_key)
        ...
        message = alice.encrypt_message("bob", "hello")
        assert authority.decrypt(message) == "hello"
        ```
    """

    def __init__(self, private_key: Optional[X25519PrivateKey] = None) -> None:
        self._private_key = private_key or X25519PrivateKey.generate()

    @classmethod
    def from_seed(cls, seed: bytes) -> "EscrowAuthority":
        """Authority with a key derived from a 32-byte seed."""
        private_key, _ = derive_keys_from_seed(seed)
        return cls(private_key)

    @property
    def public_key(self) -> X25519PublicKey:
        """The public key every client wraps message keys for."""
        return self._private_key.public_key()

    def recover_message_key(self, header: MessageHeader) -> bytes:
        """Recover the message key escrowed in a header."""
        return unwrap_message_key(
            self._private_key,
            header.escrow_ephemeral_public_key,
            header.escrow_ciphertext,
            header.escrow_nonce,
        )

    def decrypt(self, message: EncryptedMessage) -> str:
        """Decrypt a single message using only its escrowed key."""
        message_key = self.recover_message_key(message.header)
        plaintext = aead_decrypt(
            message_key,
            message.ciphertext,
            message.header.message_nonce,
            message.header.associated_data(),
        )
        return plaintext.decode("utf-8")
