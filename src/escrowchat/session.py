"""Ratchet session state and the two ways a session starts."""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from .kdf import kdf_split
from .keys import generate_keypair, x25519_ecdh, public_key_to_bytes, key_fingerprint

logger = logging.getLogger(__name__)


@dataclass
class RatchetSession:
    """Double Ratchet state for one peer.

    Attributes:
        dh_pair: Our current ratchet private key (DHs).
        root_key: The root key (RK); only the DH ratchet changes it.
        dh_remote: The peer's current ratchet public key (DHr), None until the
            first inbound message on a responder session.
        send_chain_key: Sending chain key (CKs).
        receive_chain_key: Receiving chain key (CKr).
        send_counter: Messages sent on the current sending chain (Ns).
        receive_counter: Messages received on the current receiving chain (Nr).
        previous_chain_length: Length of our previous sending chain (PN).
        skipped_keys: (fingerprint, counter) -> message key, oldest first.
        received: (fingerprint, counter) pairs already decrypted.
    """

    dh_pair: X25519PrivateKey
    root_key: bytes
    dh_remote: Optional[X25519PublicKey] = None
    send_chain_key: Optional[bytes] = None
    receive_chain_key: Optional[bytes] = None
    send_counter: int = 0
    receive_counter: int = 0
    previous_chain_length: int = 0
    skipped_keys: dict = field(default_factory=dict)
    received: set = field(default_factory=set)

    @property
    def dh_public_bytes(self) -> bytes:
        """Raw bytes of our current ratchet public key."""
        return public_key_to_bytes(self.dh_pair.public_key())

    @property
    def dh_remote_bytes(self) -> Optional[bytes]:
        if self.dh_remote is None:
            return None
        return public_key_to_bytes(self.dh_remote)

    @property
    def dh_remote_fingerprint(self) -> Optional[bytes]:
        remote = self.dh_remote_bytes
        return key_fingerprint(remote) if remote is not None else None

    def copy(self) -> "RatchetSession":
        """Working copy; mutating it never touches this session."""
        return dataclasses.replace(
            self,
            skipped_keys=dict(self.skipped_keys),
            received=set(self.received),
        )


def init_initiator(
    identity_private_key: X25519PrivateKey,
    peer_identity_key: X25519PublicKey,
) -> RatchetSession:
    """Start a session as the party that sends first.

    The shared secret of both identity keys is combined with a fresh ratchet
    key to produce the first sending chain. The receiving chain stays empty
    until the peer ratchets.

    Args:
        identity_private_key: Our long-term identity private key.
        peer_identity_key: The peer's certified identity public key.

    Returns:
        A new RatchetSession.
    """
    shared_key = x25519_ecdh(identity_private_key, peer_identity_key)

    dh_pair, _ = generate_keypair()
    root_key, send_chain_key = kdf_split(shared_key, x25519_ecdh(dh_pair, peer_identity_key))

    logger.debug("Initialized initiator session")
    return RatchetSession(
        dh_pair=dh_pair,
        root_key=root_key,
        dh_remote=peer_identity_key,
        send_chain_key=send_chain_key,
    )


def init_responder(
    identity_private_key: X25519PrivateKey,
    peer_identity_key: X25519PublicKey,
) -> RatchetSession:
    """Start a session as the party that receives first.

    Our identity key pair serves as the first ratchet key pair and the identity
    shared secret is the root key. Both chains are established by the DH
    ratchet step the first inbound message triggers.
    """
    shared_key = x25519_ecdh(identity_private_key, peer_identity_key)

    logger.debug("Initialized responder session")
    return RatchetSession(dh_pair=identity_private_key, root_key=shared_key)
