"""
escrowchat - Double Ratchet messaging with per-message key escrow

Python implementation using X25519 + HKDF/HMAC-SHA256 + ChaCha20-Poly1305,
with Ed25519-signed identity certificates.
"""

from .keys import derive_keys_from_seed, generate_keypair, key_fingerprint, display_fingerprint
from .certificate import Certificate, CertificateAuthority, verify_certificate
from .header import (
    MessageHeader,
    EncryptedMessage,
    encode_header,
    decode_header,
    encode_message,
    decode_message,
)
from .session import RatchetSession, init_initiator, init_responder
from .ratchet import advance_chain, dh_ratchet, ratchet_encrypt, ratchet_decrypt
from .skipped_keys import skip_to, try_consume
from .escrow import EscrowAuthority, EscrowedKey, wrap_message_key, unwrap_message_key
from .storage import TrustStore, TrustedPeer, SessionStore
from .client import MessengerConfig, MessengerClient
from .types import (
    MAX_SKIP,
    MAX_SKIPPED_KEYS,
    HEADER_SIZE,
    EscrowChatError,
    CertificateVerificationFailed,
    DuplicateCertificate,
    NoCertificateForPeer,
    NotRegisteredError,
    ReplayDetected,
    TooManySkippedMessages,
    DecryptionFailed,
    InvalidHeaderError,
)

__version__ = "0.1.0"

__all__ = [
    # Keys
    "derive_keys_from_seed",
    "generate_keypair",
    "key_fingerprint",
    "display_fingerprint",
    # Certificates
    "Certificate",
    "CertificateAuthority",
    "verify_certificate",
    # Header
    "MessageHeader",
    "EncryptedMessage",
    "encode_header",
    "decode_header",
    "encode_message",
    "decode_message",
    # Session
    "RatchetSession",
    "init_initiator",
    "init_responder",
    # Ratchet
    "advance_chain",
    "dh_ratchet",
    "ratchet_encrypt",
    "ratchet_decrypt",
    "skip_to",
    "try_consume",
    # Escrow
    "EscrowAuthority",
    "EscrowedKey",
    "wrap_message_key",
    "unwrap_message_key",
    # Storage
    "TrustStore",
    "TrustedPeer",
    "SessionStore",
    # Client
    "MessengerConfig",
    "MessengerClient",
    # Constants
    "MAX_SKIP",
    "MAX_SKIPPED_KEYS",
    "HEADER_SIZE",
    # Errors
    "EscrowChatError",
    "CertificateVerificationFailed",
    "DuplicateCertificate",
    "NoCertificateForPeer",
    "NotRegisteredError",
    "ReplayDetected",
    "TooManySkippedMessages",
    "DecryptionFailed",
    "InvalidHeaderError",
]
