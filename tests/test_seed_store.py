"""
Tests for seed stores, developer-mode salting and settings.
"""

import base64
import logging
import stat
from pathlib import Path

import pytest

from skykey.config import SkykeySettings, clear_settings_cache, configure_logging, get_settings
from skykey.crypto import sha512
from skykey.errors import InvalidInputError, InvalidSeedLengthError
from skykey.seed_store import FileSeedStore, InMemorySeedStore, salt_seed_for_dev_mode, save_seed


class TestSeedStores:
    def test_in_memory(self, seed):
        store = InMemorySeedStore()
        assert store.get_seed() is None
        store.save_seed(seed)
        assert store.get_seed() == seed
        store.clear_seed()
        assert store.get_seed() is None

    def test_file_store(self, tmp_path, seed):
        path = tmp_path / "keys" / ".seed"
        FileSeedStore(path).save_seed(seed)

        assert FileSeedStore(path).get_seed() == seed
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

        FileSeedStore(path).clear_seed()
        assert not path.exists()
        assert FileSeedStore(path).get_seed() is None

    def test_clear_missing_file(self, tmp_path):
        FileSeedStore(tmp_path / ".seed").clear_seed()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / ".seed"
        path.write_text("not base64!!!")
        with pytest.raises(InvalidInputError, match="corrupt"):
            FileSeedStore(path).get_seed()

    def test_wrong_length_file(self, tmp_path):
        path = tmp_path / ".seed"
        path.write_text(base64.b64encode(b"\x00" * 8).decode())
        with pytest.raises(InvalidSeedLengthError):
            FileSeedStore(path).get_seed()


class TestSaveSeed:
    def test_plain(self, seed):
        store = InMemorySeedStore()
        assert save_seed(store, seed) == seed
        assert store.get_seed() == seed

    def test_dev_mode_salts(self, seed):
        store = InMemorySeedStore()
        stored = save_seed(store, seed, dev_mode=True)
        assert stored == sha512(sha512("developer mode") + sha512(seed))[:16]
        assert stored == salt_seed_for_dev_mode(seed)
        assert store.get_seed() == stored != seed

    def test_wrong_length(self):
        with pytest.raises(InvalidSeedLengthError):
            save_seed(InMemorySeedStore(), bytes(32))


class TestSettings:
    def test_defaults(self, clean_env):
        settings = SkykeySettings()
        assert settings.dev_mode is False
        assert settings.mysky_domain == "skynet-mysky.hns"
        assert settings.log_level == "INFO"
        assert settings.seed_file == settings.data_dir / ".seed"

    def test_env_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("SKYKEY_DEV_MODE", "true")
        monkeypatch.setenv("SKYKEY_DATA_DIR", "/tmp/skykey-test")
        settings = SkykeySettings()
        assert settings.dev_mode is True
        assert settings.data_dir == Path("/tmp/skykey-test")
        assert settings.permissions_file == Path("/tmp/skykey-test/permissions.json")

    def test_get_settings_is_cached(self, clean_env, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("SKYKEY_MYSKY_DOMAIN", "mysky.hns")
        assert get_settings().mysky_domain == "skynet-mysky.hns"
        clear_settings_cache()
        assert get_settings().mysky_domain == "mysky.hns"

    def test_configure_logging(self, clean_env):
        configure_logging(SkykeySettings(log_level="debug"))
        assert logging.getLogger("skykey").level == logging.DEBUG
