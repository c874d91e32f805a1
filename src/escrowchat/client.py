"""
Messenger client for escrowed end-to-end encrypted messaging.

The MessengerClient owns an identity key, a trust store of peer certificates
and one Double Ratchet session per peer. Transport of certificates, headers
and ciphertexts is left to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from .certificate import Certificate
from .header import EncryptedMessage, MessageHeader
from .keys import derive_keys_from_seed, generate_keypair, public_key_to_bytes
from .ratchet import ratchet_encrypt, ratchet_decrypt
from .session import init_initiator, init_responder
from .storage import SessionStore, TrustStore
from .types import (
    MAX_SKIP,
    MAX_SKIPPED_KEYS,
    EscrowChatError,
    NotRegisteredError,
    ReplayDetected,
    TooManySkippedMessages,
    DecryptionFailed,
)

logger = logging.getLogger(__name__)


@dataclass
class MessengerConfig:
    """Configuration for the messenger client."""

    max_skip: int = MAX_SKIP
    """Maximum number of message keys skipped on one receiving chain."""

    max_skipped_keys: int = MAX_SKIPPED_KEYS
    """Maximum number of skipped message keys cached per session."""

    identity_seed: Optional[bytes] = None
    """Optional 32-byte seed for a deterministic identity key pair."""


class MessengerClient:
    """
    One party of an escrowed Double Ratchet conversation.

    Example usage:
        ```python
        ca = CertificateAuthority()
        escrow = EscrowAuthority()

        alice = MessengerClient(ca.public_key, escrow.public_key)
        bob = MessengerClient(ca.public_key, escrow.public_key)

        alice_cert = alice.issue_certificate("alice")
        bob_cert = bob.issue_certificate("bob")
        alice.accept_certificate(bob_cert, ca.sign(bob_cert))
        bob.accept_certificate(alice_cert, ca.sign(alice_cert))

        message = alice.encrypt_message("bob", "Hello, Bob!")
        text = bob.decrypt_message("alice", message.header, message.ciphertext)
        ```
    """

    def __init__(
        self,
        ca_public_key: Ed25519PublicKey,
        escrow_public_key: X25519PublicKey,
        config: Optional[MessengerConfig] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            ca_public_key: Verifying key of the certificate authority.
            escrow_public_key: Public key of the escrow authority.
            config: Optional configuration (default: MessengerConfig()).
        """
        self.escrow_public_key = escrow_public_key
        self.config = config or MessengerConfig()
        self.trust_store = TrustStore(ca_public_key)
        self.sessions = SessionStore()
        self.username: Optional[str] = None
        self._identity_key: Optional[X25519PrivateKey] = None

    @property
    def identity_public_key(self) -> bytes:
        """Our identity public key (32 bytes)."""
        return public_key_to_bytes(self._require_identity().public_key())

    # MARK: - Certificates

    def issue_certificate(self, username: str) -> Certificate:
        """
        Create our identity key pair and the certificate to be signed.

        The identity key is generated once; later calls return a certificate
        for the same key.

        Args:
            username: Our username.

        Returns:
            Certificate binding username to our identity public key.
        """
        if self._identity_key is None:
            if self.config.identity_seed is not None:
                self._identity_key, _ = derive_keys_from_seed(self.config.identity_seed)
            else:
                self._identity_key, _ = generate_keypair()
            self.username = username
            logger.info("Generated identity key for %s", username)
        elif username != self.username:
            raise EscrowChatError(f"Client already registered as {self.username!r}")

        return Certificate(username=username, public_key=self.identity_public_key)

    def accept_certificate(self, certificate: Certificate, signature: bytes) -> None:
        """
        Verify and store a peer's certificate.

        Raises:
            CertificateVerificationFailed: If the signature is invalid.
            DuplicateCertificate: If a certificate for that username exists.
        """
        self.trust_store.record_certificate(certificate, signature)

    # MARK: - Messages

    def encrypt_message(self, peer: str, plaintext: str) -> EncryptedMessage:
        """
        Encrypt a message for a peer.

        Starts a session as initiator if none exists.

        Args:
            peer: The peer's username.
            plaintext: Message text.

        Returns:
            EncryptedMessage to hand to the transport.

        Raises:
            NoCertificateForPeer: If the peer is not trusted.
        """
        peer_key = self.trust_store.public_key_for(peer)
        identity_key = self._require_identity()

        with self.sessions.lock_for(peer):
            session = self.sessions.get_session(peer)
            if session is None:
                session = init_initiator(identity_key, peer_key)
                logger.info("Started session with %s as initiator", peer)

            message, updated = ratchet_encrypt(session, plaintext, self.escrow_public_key)
            self.sessions.put_session(peer, updated)

        return message

    def decrypt_message(self, peer: str, header: MessageHeader, ciphertext: bytes) -> str:
        """
        Decrypt a message from a peer.

        Starts a session as responder if none exists. On any error the session
        is left exactly as it was.

        Args:
            peer: The sender's username.
            header: The message header.
            ciphertext: The payload ciphertext.

        Returns:
            The message text.

        Raises:
            NoCertificateForPeer: If the peer is not trusted.
            ReplayDetected: If the message was already accepted.
            TooManySkippedMessages: If too many messages were skipped.
            DecryptionFailed: If the message does not authenticate.
        """
        peer_key = self.trust_store.public_key_for(peer)
        identity_key = self._require_identity()

        with self.sessions.lock_for(peer):
            session = self.sessions.get_session(peer)
            created = session is None
            if created:
                session = init_responder(identity_key, peer_key)

            try:
                plaintext, updated = ratchet_decrypt(
                    session,
                    header,
                    ciphertext,
                    max_skip=self.config.max_skip,
                    max_skipped_keys=self.config.max_skipped_keys,
                )
            except (ReplayDetected, TooManySkippedMessages, DecryptionFailed) as e:
                logger.warning("Rejected message %d from %s: %s", header.counter, peer, e)
                raise

            self.sessions.put_session(peer, updated)

        if created:
            logger.info("Started session with %s as responder", peer)
        return plaintext

    def _require_identity(self) -> X25519PrivateKey:
        if self._identity_key is None:
            raise NotRegisteredError("Call issue_certificate before messaging")
        return self._identity_key
