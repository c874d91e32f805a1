"""
Certificates binding a username to an X25519 identity key.

A certificate authority signs the canonical serialization of a certificate
with its Ed25519 key. Peers verify that signature against the authority's
fixed public key before trusting the embedded identity key. This prevents
key substitution by the relay.
"""

import base64
import json
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey
from cryptography.exceptions import InvalidSignature

from .keys import public_key_from_bytes
from .types import PUBLIC_KEY_SIZE, SIGNATURE_SIZE, CertificateVerificationFailed


@dataclass(frozen=True)
class Certificate:
    """A username bound to a raw X25519 public key (32 bytes)."""
    username: str
    public_key: bytes

    def serialize(self) -> bytes:
        """
        Canonical serialization, the exact bytes the authority signs.

        Sorted-key compact JSON with the public key in standard base64.
        """
        payload = {
            "public_key": base64.standard_b64encode(self.public_key).decode("ascii"),
            "username": self.username,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


class CertificateAuthority:
    """Issues signatures over certificates with an Ed25519 key."""

    def __init__(self, signing_key: Optional[Ed25519PrivateKey] = None) -> None:
        self._signing_key = signing_key or Ed25519PrivateKey.generate()

    @property
    def public_key(self) -> Ed25519PublicKey:
        """The authority's verifying key, distributed to every client."""
        return self._signing_key.public_key()

    def sign(self, certificate: Certificate) -> bytes:
        """Sign a certificate's canonical serialization (64-byte signature)."""
        return self._signing_key.sign(certificate.serialize())


def verify_certificate(
    certificate: Certificate,
    signature: bytes,
    ca_public_key: Ed25519PublicKey,
) -> X25519PublicKey:
    """
    Verify a certificate and import the identity key it carries.

    Args:
        certificate: The certificate to verify
        signature: The authority's Ed25519 signature (64 bytes)
        ca_public_key: The trusted authority verifying key

    Returns:
        The certified X25519 public key

    Raises:
        CertificateVerificationFailed: If the signature does not verify or the
            certificate is malformed
    """
    if len(signature) != SIGNATURE_SIZE:
        raise CertificateVerificationFailed(
            f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}"
        )

    if len(certificate.public_key) != PUBLIC_KEY_SIZE:
        raise CertificateVerificationFailed(
            f"Certificate public key must be {PUBLIC_KEY_SIZE} bytes, "
            f"got {len(certificate.public_key)}"
        )

    try:
        ca_public_key.verify(signature, certificate.serialize())
    except InvalidSignature as e:
        raise CertificateVerificationFailed(
            f"Invalid certificate signature for {certificate.username!r}"
        ) from e

    return public_key_from_bytes(certificate.public_key)
