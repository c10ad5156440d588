"""Shared fixtures for the skykey test suite."""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from skykey.config import SkykeySettings, clear_settings_cache
from skykey.gateway import SigningGateway
from skykey.permissions import PermissionsProvider
from skykey.registry import InMemoryRegistryClient
from skykey.revision import RevisionNumberCache
from skykey.seed import phrase_to_seed
from skykey.seed_store import InMemorySeedStore

# Known phrase and its seed, shared with the hard-coded key vectors
TEST_PHRASE = "topic gambit bumper lyrics etched dime going mocked abbey scrub irate depth absorb bias awful"
TEST_SEED = bytes([223, 213, 194, 46, 33, 71, 77, 37, 230, 60, 0, 49, 246, 248, 203, 3])


@pytest.fixture
def clean_env(monkeypatch):
    """Remove SKYKEY_* variables and the cached settings."""
    for key in list(os.environ):
        if key.startswith("SKYKEY_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def seed() -> bytes:
    return phrase_to_seed(TEST_PHRASE)


@pytest.fixture
def settings(tmp_path, clean_env) -> SkykeySettings:
    return SkykeySettings(dev_mode=False, data_dir=tmp_path)


@pytest.fixture
def registry() -> InMemoryRegistryClient:
    return InMemoryRegistryClient()


@pytest.fixture
def revisions() -> RevisionNumberCache:
    return RevisionNumberCache()


@pytest.fixture
def gateway(settings, registry, revisions) -> SigningGateway:
    """A gateway with nobody logged in and no grants."""
    return SigningGateway(
        seed_store=InMemorySeedStore(),
        permissions=PermissionsProvider(),
        registry=registry,
        revisions=revisions,
        settings=settings,
    )


@pytest.fixture
def logged_in_gateway(gateway, seed) -> SigningGateway:
    gateway.login(seed)
    return gateway
