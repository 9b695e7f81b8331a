"""Shared pytest fixtures for mintertx tests."""

import pytest
from eth_account import Account

from vectors import RECIPIENT


@pytest.fixture
def account():
    """Generate a random secp256k1 account."""
    return Account.create()


@pytest.fixture
def private_key(account):
    return bytes(account.key)


@pytest.fixture
def send_data():
    return {"coin": "MNT", "to": RECIPIENT, "value": 10 ** 18}
