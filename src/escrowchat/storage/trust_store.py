"""Trust store of verified peer certificates."""

import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey

from ..certificate import Certificate, verify_certificate
from ..keys import display_fingerprint
from ..types import DuplicateCertificate, NoCertificateForPeer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustedPeer:
    """A certificate and the identity key imported from it."""
    certificate: Certificate
    public_key: X25519PublicKey


class TrustStore:
    """In-memory map of username to verified certificate.

    Entries are written once and never replaced; certificate rotation is not
    supported.
    """

    def __init__(self, ca_public_key: Ed25519PublicKey) -> None:
        self._ca_public_key = ca_public_key
        self._peers: dict[str, TrustedPeer] = {}

    def record_certificate(self, certificate: Certificate, signature: bytes) -> None:
        """Verify a certificate and trust its key.

        Raises:
            CertificateVerificationFailed: If the signature does not verify.
            DuplicateCertificate: If the username is already trusted.
        """
        public_key = verify_certificate(certificate, signature, self._ca_public_key)
        if certificate.username in self._peers:
            raise DuplicateCertificate(certificate.username)

        self._peers[certificate.username] = TrustedPeer(certificate=certificate, public_key=public_key)

        logger.info(
            "Trusted certificate for %s (%s)",
            certificate.username,
            display_fingerprint(certificate.public_key),
        )

    def public_key_for(self, username: str) -> X25519PublicKey:
        """The verified identity key of a peer.

        Raises:
            NoCertificateForPeer: If no certificate was accepted for username.
        """
        peer = self._peers.get(username)
        if peer is None:
            raise NoCertificateForPeer(username)
        return peer.public_key

    def certificate_for(self, username: str) -> Certificate:
        """The accepted certificate of a peer."""
        peer = self._peers.get(username)
        if peer is None:
            raise NoCertificateForPeer(username)
        return peer.certificate

    def __contains__(self, username: str) -> bool:
        return username in self._peers

    def usernames(self) -> list[str]:
        """All trusted usernames."""
        return list(self._peers.keys())
