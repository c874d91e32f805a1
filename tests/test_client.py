"""End-to-end tests for MessengerClient."""

import dataclasses
import logging
import random
import threading

import pytest
from escrowchat import (
    CertificateAuthority,
    EscrowAuthority,
    MessengerClient,
    MessengerConfig,
    decode_message,
    encode_message,
)
from escrowchat.crypto import aead_decrypt
from escrowchat.escrow import unwrap_message_key
from escrowchat.keys import generate_keypair
from escrowchat.types import (
    CertificateVerificationFailed,
    DecryptionFailed,
    DuplicateCertificate,
    EscrowChatError,
    NoCertificateForPeer,
    NotRegisteredError,
    ReplayDetected,
    TooManySkippedMessages,
)
from .conftest import introduce, make_client
from .test_vectors import ALICE_SEED_HEX, TEST_MESSAGES


def deliver(receiver, sender_name, message):
    return receiver.decrypt_message(sender_name, message.header, message.ciphertext)


def flip_bytes(value: bytes) -> bytes:
    return bytes([value[0] ^ 0x01]) + value[1:]


class TestRegistration:
    """Certificates and trust."""

    def test_issue_certificate(self, ca, escrow) -> None:
        client = MessengerClient(ca.public_key, escrow.public_key)
        certificate = client.issue_certificate("alice")

        assert certificate.username == "alice"
        assert certificate.public_key == client.identity_public_key
        assert client.username == "alice"

    def test_identity_is_stable(self, alice) -> None:
        first = alice.issue_certificate("alice")
        second = alice.issue_certificate("alice")
        assert first == second

    def test_cannot_rename(self, alice) -> None:
        with pytest.raises(EscrowChatError, match="already registered"):
            alice.issue_certificate("mallory")

    def test_identity_seed(self, ca, escrow) -> None:
        config = MessengerConfig(identity_seed=bytes.fromhex(ALICE_SEED_HEX))
        first = MessengerClient(ca.public_key, escrow.public_key, config)
        second = MessengerClient(ca.public_key, escrow.public_key, config)

        assert first.issue_certificate("alice") == second.issue_certificate("alice")

    def test_forged_certificate(self, alice, bob) -> None:
        certificate = bob.issue_certificate("bob")
        forged_signature = CertificateAuthority().sign(certificate)

        with pytest.raises(CertificateVerificationFailed):
            alice.accept_certificate(certificate, forged_signature)

        with pytest.raises(NoCertificateForPeer):
            alice.encrypt_message("bob", "hello")

    def test_duplicate_certificate(self, ca, alice, bob) -> None:
        certificate = bob.issue_certificate("bob")
        alice.accept_certificate(certificate, ca.sign(certificate))

        with pytest.raises(DuplicateCertificate):
            alice.accept_certificate(certificate, ca.sign(certificate))

    def test_no_certificate_for_peer(self, alice) -> None:
        with pytest.raises(NoCertificateForPeer):
            alice.encrypt_message("bob", "hello")

    def test_decrypt_from_untrusted_peer(self, ca, escrow, connected) -> None:
        alice, _ = connected
        carol = make_client(ca, escrow, "carol")
        message = alice.encrypt_message("bob", "hello")

        with pytest.raises(NoCertificateForPeer):
            deliver(carol, "alice", message)

    def test_not_registered(self, ca, escrow, bob) -> None:
        client = MessengerClient(ca.public_key, escrow.public_key)
        certificate = bob.issue_certificate("bob")
        client.accept_certificate(certificate, ca.sign(certificate))

        with pytest.raises(NotRegisteredError):
            client.encrypt_message("bob", "hello")


class TestRoundTrip:
    """Messages decrypt to what was sent."""

    @pytest.mark.parametrize("name", sorted(TEST_MESSAGES))
    def test_messages(self, connected, name) -> None:
        alice, bob = connected
        text = TEST_MESSAGES[name]

        assert deliver(bob, "alice", alice.encrypt_message("bob", text)) == text

    def test_many_messages_one_direction(self, connected) -> None:
        alice, bob = connected
        for i in range(50):
            assert deliver(bob, "alice", alice.encrypt_message("bob", f"message {i}")) == f"message {i}"

    def test_through_relay_bytes(self, connected) -> None:
        alice, bob = connected
        wire = encode_message(alice.encrypt_message("bob", "over the wire"))

        assert deliver(bob, "alice", decode_message(wire)) == "over the wire"

    def test_bidirectional_convergence(self, connected) -> None:
        """Each turn crosses a DH ratchet boundary on both sides."""
        alice, bob = connected
        for turn in range(10):
            for i in range(turn % 3 + 1):
                text = f"alice {turn}.{i}"
                assert deliver(bob, "alice", alice.encrypt_message("bob", text)) == text
            for i in range((turn + 1) % 3 + 1):
                text = f"bob {turn}.{i}"
                assert deliver(alice, "bob", bob.encrypt_message("alice", text)) == text

    def test_sessions_per_peer_are_independent(self, ca, escrow, connected) -> None:
        alice, bob = connected
        carol = make_client(ca, escrow, "carol")
        introduce(ca, alice, carol)

        to_bob = alice.encrypt_message("bob", "for bob")
        to_carol = alice.encrypt_message("carol", "for carol")

        assert deliver(bob, "alice", to_bob) == "for bob"
        assert deliver(carol, "alice", to_carol) == "for carol"
        assert to_bob.header.ratchet_public_key != to_carol.header.ratchet_public_key

        with pytest.raises(DecryptionFailed):
            deliver(carol, "alice", alice.encrypt_message("bob", "not for carol"))


class TestTamperDetection:
    """Any modified bit fails authentication and leaves state untouched."""

    BYTE_FIELDS = [
        "ratchet_public_key",
        "escrow_ephemeral_public_key",
        "escrow_ciphertext",
        "escrow_nonce",
        "message_nonce",
    ]
    INT_FIELDS = ["previous_chain_length", "counter"]

    @pytest.fixture
    def exchanged(self, connected):
        """Both sides past their first DH ratchet, next message in flight."""
        alice, bob = connected
        deliver(bob, "alice", alice.encrypt_message("bob", "hello"))
        deliver(alice, "bob", bob.encrypt_message("alice", "hi"))
        return alice, bob, alice.encrypt_message("bob", "original")

    def test_ciphertext(self, exchanged) -> None:
        alice, bob, message = exchanged
        with pytest.raises(DecryptionFailed):
            bob.decrypt_message("alice", message.header, flip_bytes(message.ciphertext))

        assert deliver(bob, "alice", message) == "original"

    @pytest.mark.parametrize("field", BYTE_FIELDS)
    def test_header_bytes(self, exchanged, field) -> None:
        alice, bob, message = exchanged
        header = dataclasses.replace(message.header, **{field: flip_bytes(getattr(message.header, field))})

        with pytest.raises(DecryptionFailed):
            bob.decrypt_message("alice", header, message.ciphertext)

        assert deliver(bob, "alice", message) == "original"

    @pytest.mark.parametrize("field", INT_FIELDS)
    def test_header_counters(self, exchanged, field) -> None:
        alice, bob, message = exchanged
        header = dataclasses.replace(message.header, **{field: getattr(message.header, field) ^ 0x01})

        with pytest.raises(DecryptionFailed):
            bob.decrypt_message("alice", header, message.ciphertext)

        assert deliver(bob, "alice", message) == "original"

    def test_first_message_tampered(self, connected) -> None:
        """A failed first message does not create a session."""
        alice, bob = connected
        message = alice.encrypt_message("bob", "first")

        with pytest.raises(DecryptionFailed):
            bob.decrypt_message("alice", message.header, flip_bytes(message.ciphertext))

        assert not bob.sessions.has_session("alice")
        assert deliver(bob, "alice", message) == "first"

    def test_committed_session_untouched(self, exchanged) -> None:
        alice, bob, message = exchanged
        before = bob.sessions.get_session("alice")
        snapshot = before.copy()

        with pytest.raises(DecryptionFailed):
            bob.decrypt_message("alice", message.header, flip_bytes(message.ciphertext))

        after = bob.sessions.get_session("alice")
        assert after is before
        assert after.receive_counter == snapshot.receive_counter
        assert after.root_key == snapshot.root_key
        assert after.receive_chain_key == snapshot.receive_chain_key
        assert after.skipped_keys == snapshot.skipped_keys
        assert after.received == snapshot.received


class TestReplay:
    """Duplicate deliveries are rejected."""

    def test_replay_rejected(self, connected) -> None:
        alice, bob = connected
        message = alice.encrypt_message("bob", "once")
        deliver(bob, "alice", message)

        with pytest.raises(ReplayDetected):
            deliver(bob, "alice", message)

        assert deliver(bob, "alice", alice.encrypt_message("bob", "next")) == "next"

    def test_replay_of_skipped_message(self, connected) -> None:
        alice, bob = connected
        first = alice.encrypt_message("bob", "first")
        second = alice.encrypt_message("bob", "second")
        deliver(bob, "alice", second)
        deliver(bob, "alice", first)

        with pytest.raises(ReplayDetected):
            deliver(bob, "alice", first)

    def test_replay_after_ratchet(self, connected) -> None:
        alice, bob = connected
        message = alice.encrypt_message("bob", "old chain")
        deliver(bob, "alice", message)
        deliver(alice, "bob", bob.encrypt_message("alice", "reply"))
        deliver(bob, "alice", alice.encrypt_message("bob", "new chain"))

        with pytest.raises(ReplayDetected):
            deliver(bob, "alice", message)

    def test_replay_logged(self, connected, caplog) -> None:
        alice, bob = connected
        message = alice.encrypt_message("bob", "once")
        deliver(bob, "alice", message)

        with caplog.at_level(logging.WARNING, logger="escrowchat.client"):
            with pytest.raises(ReplayDetected):
                deliver(bob, "alice", message)

        assert "Rejected message 0 from alice" in caplog.text


class TestOutOfOrder:
    """Delivery order independent of send order."""

    def test_three_one_two(self, connected) -> None:
        alice, bob = connected
        messages = [alice.encrypt_message("bob", text) for text in ("one", "two", "three")]

        assert deliver(bob, "alice", messages[2]) == "three"
        assert deliver(bob, "alice", messages[0]) == "one"
        assert deliver(bob, "alice", messages[1]) == "two"

    def test_shuffled_across_ratchets(self, connected) -> None:
        alice, bob = connected
        rng = random.Random(1234)

        for turn in range(4):
            batch = [(f"a{turn}-{i}", alice.encrypt_message("bob", f"a{turn}-{i}")) for i in range(8)]
            rng.shuffle(batch)
            for text, message in batch:
                assert deliver(bob, "alice", message) == text
            deliver(alice, "bob", bob.encrypt_message("alice", f"ack {turn}"))

    def test_late_message_from_previous_chain(self, connected) -> None:
        alice, bob = connected
        deliver(bob, "alice", alice.encrypt_message("bob", "first"))
        late = alice.encrypt_message("bob", "late")

        deliver(alice, "bob", bob.encrypt_message("alice", "reply"))
        deliver(bob, "alice", alice.encrypt_message("bob", "new chain"))

        assert deliver(bob, "alice", late) == "late"


class TestSkipBound:
    """Too large a gap is refused."""

    @pytest.fixture
    def config(self):
        return MessengerConfig(max_skip=10)

    def test_too_many_skipped(self, connected) -> None:
        alice, bob = connected
        messages = [alice.encrypt_message("bob", str(i)) for i in range(12)]

        with pytest.raises(TooManySkippedMessages):
            deliver(bob, "alice", messages[11])

        assert not bob.sessions.has_session("alice")
        assert deliver(bob, "alice", messages[10]) == "10"
        assert deliver(bob, "alice", messages[0]) == "0"

    def test_gap_after_deliveries(self, connected) -> None:
        alice, bob = connected
        deliver(bob, "alice", alice.encrypt_message("bob", "start"))
        messages = [alice.encrypt_message("bob", str(i)) for i in range(12)]

        with pytest.raises(TooManySkippedMessages):
            deliver(bob, "alice", messages[11])

        assert deliver(bob, "alice", messages[0]) == "0"


class TestEscrow:
    """The escrow authority can read every message."""

    def test_authority_decrypts_every_message(self, escrow, connected) -> None:
        alice, bob = connected
        for turn in range(3):
            message = alice.encrypt_message("bob", f"alice {turn}")
            assert escrow.decrypt(message) == f"alice {turn}"
            deliver(bob, "alice", message)

            reply = bob.encrypt_message("alice", f"bob {turn}")
            assert escrow.decrypt(reply) == f"bob {turn}"
            deliver(alice, "bob", reply)

    def test_recover_with_private_key(self) -> None:
        """Recompute the escrow secret by hand and open the payload."""
        ca = CertificateAuthority()
        authority_private_key, _ = generate_keypair()
        authority = EscrowAuthority(authority_private_key)
        alice = make_client(ca, authority, "alice")
        bob = make_client(ca, authority, "bob")
        introduce(ca, alice, bob)

        message = alice.encrypt_message("bob", "escrowed")
        header = message.header
        message_key = unwrap_message_key(
            authority_private_key,
            header.escrow_ephemeral_public_key,
            header.escrow_ciphertext,
            header.escrow_nonce,
        )
        plaintext = aead_decrypt(message_key, message.ciphertext, header.message_nonce, header.associated_data())

        assert plaintext == b"escrowed"

    def test_escrow_does_not_consume_message(self, escrow, connected) -> None:
        alice, bob = connected
        message = alice.encrypt_message("bob", "both can read")

        assert escrow.decrypt(message) == "both can read"
        assert deliver(bob, "alice", message) == "both can read"


class TestConcurrency:
    """Sends for the same peer are serialized by the session lock."""

    def test_concurrent_sends(self, connected) -> None:
        alice, bob = connected
        results = []
        results_lock = threading.Lock()

        def send(worker: int) -> None:
            for i in range(10):
                text = f"{worker}:{i}"
                message = alice.encrypt_message("bob", text)
                with results_lock:
                    results.append((text, message))

        threads = [threading.Thread(target=send, args=(w,)) for w in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        counters = sorted(message.header.counter for _, message in results)
        assert counters == list(range(50))

        for text, message in sorted(results, key=lambda item: item[1].header.counter):
            assert deliver(bob, "alice", message) == text
