"""Shared fixtures for the saledger test suite."""

import pytest

from saledger import Ledger, SAEvent


FIXED_MS = 1_700_000_000_000


def make_event(spi: int = 256, status: str = "active", **overrides) -> SAEvent:
    """A valid SA event. The raw key is hashed inside create()."""
    fields = dict(
        destination_address= "192.168.1.10",
        spi=                 spi,
        protocol=            "ESP",
        algorithm=           "aes256-gcm",
        lifetime=            3600,
        status=              status,
        secret_key=          "s3cret-key",
        timestamp=           FIXED_MS,
    )
    fields.update(overrides)
    return SAEvent.create(**fields)


@pytest.fixture
def event():
    return make_event()


@pytest.fixture
def ledger():
    """Difficulty-2 ledger with a genesis block."""
    return Ledger.create(difficulty=2)


@pytest.fixture
def scenario_ledger(ledger):
    """Genesis plus two SA events."""
    ledger.append(make_event(spi=256))
    ledger.append(make_event(spi=257, protocol="AH"))
    return ledger
