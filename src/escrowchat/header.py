"""Message header and its wire encoding.

The encoded header doubles as the associated data for the payload AEAD, so
any change to any header field fails authentication.
"""

from dataclasses import dataclass

from .types import (
    HEADER_VERSION,
    HEADER_SIZE,
    PUBLIC_KEY_SIZE,
    NONCE_SIZE,
    COUNTER_SIZE,
    ESCROW_CIPHERTEXT_SIZE,
    MAX_COUNTER,
    InvalidHeaderError,
)


@dataclass(frozen=True)
class MessageHeader:
    """Header sent alongside every ciphertext."""
    ratchet_public_key: bytes  # 32 bytes
    previous_chain_length: int
    counter: int
    escrow_ephemeral_public_key: bytes  # 32 bytes
    escrow_ciphertext: bytes  # 48 bytes (32 + 16 tag)
    escrow_nonce: bytes  # 12 bytes
    message_nonce: bytes  # 12 bytes

    def associated_data(self) -> bytes:
        """Bytes bound to the payload ciphertext."""
        return encode_header(self)


@dataclass(frozen=True)
class EncryptedMessage:
    """A header and the payload ciphertext it authenticates."""
    header: MessageHeader
    ciphertext: bytes  # variable (message + 16-byte tag)


def encode_header(header: MessageHeader) -> bytes:
    """
    Encode a header to bytes.

    Format (145 bytes):
        [0]        version (0x01)
        [1..32]    ratchetPublicKey (32 bytes)
        [33..36]   previousChainLength (4 bytes, big-endian uint32)
        [37..40]   counter (4 bytes, big-endian uint32)
        [41..72]   escrowEphemeralPublicKey (32 bytes)
        [73..84]   escrowNonce (12 bytes)
        [85..132]  escrowCiphertext (48 bytes)
        [133..144] messageNonce (12 bytes)

    Raises:
        InvalidHeaderError: If a field has the wrong size or range
    """
    _check_size("ratchet public key", header.ratchet_public_key, PUBLIC_KEY_SIZE)
    _check_size("escrow ephemeral public key", header.escrow_ephemeral_public_key, PUBLIC_KEY_SIZE)
    _check_size("escrow nonce", header.escrow_nonce, NONCE_SIZE)
    _check_size("escrow ciphertext", header.escrow_ciphertext, ESCROW_CIPHERTEXT_SIZE)
    _check_size("message nonce", header.message_nonce, NONCE_SIZE)

    for name, value in (
        ("previous chain length", header.previous_chain_length),
        ("counter", header.counter),
    ):
        if not 0 <= value <= MAX_COUNTER:
            raise InvalidHeaderError(f"{name} out of range: {value}")

    return (
        bytes([HEADER_VERSION])
        + header.ratchet_public_key
        + header.previous_chain_length.to_bytes(COUNTER_SIZE, byteorder="big")
        + header.counter.to_bytes(COUNTER_SIZE, byteorder="big")
        + header.escrow_ephemeral_public_key
        + header.escrow_nonce
        + header.escrow_ciphertext
        + header.message_nonce
    )


def decode_header(data: bytes) -> MessageHeader:
    """
    Decode bytes into a header.

    Raises:
        InvalidHeaderError: If data is invalid
    """
    if len(data) != HEADER_SIZE:
        raise InvalidHeaderError(f"Header must be {HEADER_SIZE} bytes, got {len(data)}")

    version = data[0]
    if version != HEADER_VERSION:
        raise InvalidHeaderError(f"Unknown version: {version}")

    offset = 1
    ratchet_public_key = data[offset : offset + PUBLIC_KEY_SIZE]
    offset += PUBLIC_KEY_SIZE

    previous_chain_length = int.from_bytes(data[offset : offset + COUNTER_SIZE], byteorder="big")
    offset += COUNTER_SIZE

    counter = int.from_bytes(data[offset : offset + COUNTER_SIZE], byteorder="big")
    offset += COUNTER_SIZE

    escrow_ephemeral_public_key = data[offset : offset + PUBLIC_KEY_SIZE]
    offset += PUBLIC_KEY_SIZE

    escrow_nonce = data[offset : offset + NONCE_SIZE]
    offset += NONCE_SIZE

    escrow_ciphertext = data[offset : offset + ESCROW_CIPHERTEXT_SIZE]
    offset += ESCROW_CIPHERTEXT_SIZE

    message_nonce = data[offset : offset + NONCE_SIZE]

    return MessageHeader(
        ratchet_public_key=ratchet_public_key,
        previous_chain_length=previous_chain_length,
        counter=counter,
        escrow_ephemeral_public_key=escrow_ephemeral_public_key,
        escrow_ciphertext=escrow_ciphertext,
        escrow_nonce=escrow_nonce,
        message_nonce=message_nonce,
    )


def encode_message(message: EncryptedMessage) -> bytes:
    """Encode header followed by ciphertext, for the relay."""
    return encode_header(message.header) + message.ciphertext


def decode_message(data: bytes) -> EncryptedMessage:
    """
    Decode relay bytes into an EncryptedMessage.

    Raises:
        InvalidHeaderError: If data is too short or the header is invalid
    """
    if len(data) < HEADER_SIZE:
        raise InvalidHeaderError(f"Data too short: {len(data)} bytes (minimum {HEADER_SIZE})")

    return EncryptedMessage(
        header=decode_header(data[:HEADER_SIZE]),
        ciphertext=data[HEADER_SIZE:],
    )


def _check_size(name: str, value: bytes, size: int) -> None:
    if len(value) != size:
        raise InvalidHeaderError(f"{name} must be {size} bytes, got {len(value)}")
