"""
Test configuration and fixtures for pytest.
"""

import logging
import secrets
import sys
from pathlib import Path

import pytest

from gitfoil.core.crypto.kyber_pqc import KYBER_1024_PK_SIZE, KYBER_1024_SK_SIZE, KyberKeypair
from gitfoil.core.keys.keypair import Keypair
from gitfoil.core.keys.keyring_store import KeyringStore
from gitfoil.core.keys.lifecycle import KeyLifecycleManager, KeySession
from gitfoil.core.keys.password_provider import StaticPasswordProvider
from gitfoil.core.logging import ROOT_LOGGER_NAME

# PBKDF2 at 600k iterations takes about a second; tests use a tiny count
TEST_ITERATIONS = 1_000

skip_on_windows = pytest.mark.skipif(
    sys.platform.startswith("win"), reason="POSIX permission bits"
)


class FakeKem:
    """Stands in for KyberKEM: random bytes of the right ML-KEM-1024 sizes."""

    backend_name = "fake"

    def generate_keypair(self) -> KyberKeypair:
        return KyberKeypair(
            public_key=secrets.token_bytes(KYBER_1024_PK_SIZE),
            secret_key=secrets.token_bytes(KYBER_1024_SK_SIZE),
            security_level=1024,
        )


@pytest.fixture
def git_dir(tmp_path: Path) -> Path:
    """An empty .git directory."""
    path = tmp_path / ".git"
    path.mkdir()
    return path


@pytest.fixture
def store(git_dir: Path) -> KeyringStore:
    return KeyringStore(git_dir, iterations=TEST_ITERATIONS)


@pytest.fixture
def keypair() -> Keypair:
    """Fixed, deterministic keypair."""
    return Keypair(
        classical_public=b"\x01" * 32,
        classical_secret=b"\x00" * 32,
        pq_public=b"\x22" * KYBER_1024_PK_SIZE,
        pq_secret=b"\x11" * KYBER_1024_SK_SIZE,
    )


@pytest.fixture
def password() -> str:
    return "correct horse battery"


@pytest.fixture
def provider(password: str) -> StaticPasswordProvider:
    return StaticPasswordProvider(password)


@pytest.fixture
def manager(store: KeyringStore, provider: StaticPasswordProvider) -> KeyLifecycleManager:
    return KeyLifecycleManager(store, password_provider=provider, kem=FakeKem())


@pytest.fixture
def session() -> KeySession:
    return KeySession()


@pytest.fixture
def master_key() -> bytes:
    return bytes(range(32))


@pytest.fixture
def root_logger():
    """The "gitfoil" logger, with its handlers restored afterwards."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    handlers, level, propagate = saved
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
