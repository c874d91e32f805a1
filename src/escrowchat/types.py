"""Type definitions and protocol constants for escrowchat."""


# Header wire format
HEADER_VERSION = 0x01
PUBLIC_KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32
ESCROW_CIPHERTEXT_SIZE = KEY_SIZE + TAG_SIZE  # 32-byte key + 16-byte tag
COUNTER_SIZE = 4
HEADER_SIZE = 1 + PUBLIC_KEY_SIZE + 2 * COUNTER_SIZE + PUBLIC_KEY_SIZE + NONCE_SIZE + ESCROW_CIPHERTEXT_SIZE + NONCE_SIZE
MAX_COUNTER = 2**32 - 1

# Skipped message keys
MAX_SKIP = 2000
MAX_SKIPPED_KEYS = 2 * MAX_SKIP

# Key derivation labels
RATCHET_LABEL = b"ratchet"
MESSAGE_LABEL = b"msg"
CHAIN_LABEL = b"ck"
ESCROW_LABEL = b"AES-GENERATION"
KEY_DERIVATION_SALT = b"escrowchat-v1-identity"
KEY_DERIVATION_INFO = b"x25519-key"

# Signature constants
SIGNATURE_SIZE = 64


# Exception types
class EscrowChatError(Exception):
    """Base exception for escrowchat errors."""
    pass


class CertificateVerificationFailed(EscrowChatError):
    """Certificate signature is invalid or the certificate is malformed."""
    pass


class DuplicateCertificate(EscrowChatError):
    """A certificate for this username has already been accepted."""

    def __init__(self, username: str) -> None:
        super().__init__(f"Certificate already recorded for: {username}")
        self.username = username


class NoCertificateForPeer(EscrowChatError):
    """No verified certificate is known for the peer."""

    def __init__(self, username: str) -> None:
        super().__init__(f"No certificate for peer: {username}")
        self.username = username


class NotRegisteredError(EscrowChatError):
    """The local client has no identity key pair yet."""
    pass


class ReplayDetected(EscrowChatError):
    """A message with this ratchet key and counter was already accepted."""

    def __init__(self, counter: int) -> None:
        super().__init__(f"Replay detected for message counter {counter}")
        self.counter = counter


class TooManySkippedMessages(EscrowChatError):
    """The header asks for more skipped message keys than allowed."""

    def __init__(self, requested: int, limit: int) -> None:
        super().__init__(f"Too many skipped messages: {requested} (max {limit})")
        self.requested = requested
        self.limit = limit


class DecryptionFailed(EscrowChatError):
    """Authenticated decryption failed (tampering or corruption)."""
    pass


class InvalidHeaderError(EscrowChatError):
    """Invalid header format."""
    pass
