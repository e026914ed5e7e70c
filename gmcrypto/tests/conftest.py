import os

import pytest

from gmcrypto.backend import probe_capabilities

STANDARD_KEY = bytes.fromhex("0123456789abcdeffedcba9876543210")
STANDARD_IV = bytes.fromhex("000102030405060708090a0b0c0d0e0f")


@pytest.fixture
def key():
    return STANDARD_KEY


@pytest.fixture
def iv():
    return STANDARD_IV


@pytest.fixture
def clean_env(monkeypatch):
    """Run with no GMCRYPTO_* variables set."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("GMCRYPTO_")}
    monkeypatch.setattr(os, "environ", env)
    return env


@pytest.fixture(scope="session")
def host_capabilities():
    return probe_capabilities()
