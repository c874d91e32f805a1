"""Tests for ratchet key derivation."""

from escrowchat.kdf import (
    kdf_split,
    kdf_to_symmetric,
    derive_message_key,
    derive_next_chain_key,
)
from escrowchat.ratchet import advance_chain
from escrowchat.types import MESSAGE_LABEL, CHAIN_LABEL


ROOT_KEY = bytes([0xAA] * 32)
DH_OUTPUT = bytes([0xBB] * 32)
CHAIN_KEY = bytes([0xCC] * 32)


class TestKdfSplit:
    """Root key derivation."""

    def test_outputs_are_32_bytes(self) -> None:
        root_key, chain_key = kdf_split(ROOT_KEY, DH_OUTPUT)
        assert len(root_key) == 32
        assert len(chain_key) == 32

    def test_deterministic(self) -> None:
        assert kdf_split(ROOT_KEY, DH_OUTPUT) == kdf_split(ROOT_KEY, DH_OUTPUT)

    def test_root_and_chain_differ(self) -> None:
        root_key, chain_key = kdf_split(ROOT_KEY, DH_OUTPUT)
        assert root_key != chain_key
        assert root_key != ROOT_KEY

    def test_depends_on_both_inputs(self) -> None:
        base = kdf_split(ROOT_KEY, DH_OUTPUT)
        assert kdf_split(bytes(32), DH_OUTPUT) != base
        assert kdf_split(ROOT_KEY, bytes(32)) != base

    def test_label_separates_domains(self) -> None:
        assert kdf_split(ROOT_KEY, DH_OUTPUT, b"other") != kdf_split(ROOT_KEY, DH_OUTPUT)


class TestSymmetricRatchet:
    """Chain key advancement."""

    def test_labels_are_disjoint(self) -> None:
        """Message keys are never equal to chain keys."""
        assert derive_message_key(CHAIN_KEY) == kdf_to_symmetric(CHAIN_KEY, MESSAGE_LABEL)
        assert derive_next_chain_key(CHAIN_KEY) == kdf_to_symmetric(CHAIN_KEY, CHAIN_LABEL)
        assert derive_message_key(CHAIN_KEY) != derive_next_chain_key(CHAIN_KEY)

    def test_advance_chain(self) -> None:
        message_key, next_chain_key = advance_chain(CHAIN_KEY)

        assert message_key == derive_message_key(CHAIN_KEY)
        assert next_chain_key == derive_next_chain_key(CHAIN_KEY)
        assert next_chain_key != CHAIN_KEY

    def test_message_keys_differ_per_counter(self) -> None:
        """Walking a chain never repeats a message or chain key."""
        chain_key = CHAIN_KEY
        seen = set()
        for _ in range(50):
            message_key, chain_key = advance_chain(chain_key)
            assert message_key not in seen
            assert chain_key not in seen
            seen.add(message_key)
            seen.add(chain_key)

    def test_deterministic(self) -> None:
        assert advance_chain(CHAIN_KEY) == advance_chain(CHAIN_KEY)
