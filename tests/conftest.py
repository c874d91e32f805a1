"""Shared fixtures: a certificate authority, an escrow authority and two clients."""

import pytest

from escrowchat import CertificateAuthority, EscrowAuthority, MessengerClient, MessengerConfig


def make_client(ca, escrow, username, config=None):
    """A registered client that is not yet trusting anyone."""
    client = MessengerClient(ca.public_key, escrow.public_key, config)
    client.issue_certificate(username)
    return client


def introduce(ca, first, second):
    """Exchange signed certificates between two registered clients."""
    first_cert = first.issue_certificate(first.username)
    second_cert = second.issue_certificate(second.username)
    first.accept_certificate(second_cert, ca.sign(second_cert))
    second.accept_certificate(first_cert, ca.sign(first_cert))


@pytest.fixture
def ca():
    return CertificateAuthority()


@pytest.fixture
def escrow():
    return EscrowAuthority()


@pytest.fixture
def config():
    return MessengerConfig()


@pytest.fixture
def alice(ca, escrow, config):
    return make_client(ca, escrow, "alice", config)


@pytest.fixture
def bob(ca, escrow, config):
    return make_client(ca, escrow, "bob", config)


@pytest.fixture
def connected(ca, alice, bob):
    """Alice and Bob with each other's certificates accepted."""
    introduce(ca, alice, bob)
    return alice, bob
