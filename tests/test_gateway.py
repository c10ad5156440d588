"""
Tests for the signing gateway: login state, permission checks and signing.
"""

import pytest

from skykey.config import SkykeySettings
from skykey.crypto import derive_identity_keypair
from skykey.encrypted_files import derive_encrypted_file_tweak
from skykey.errors import DataKeyMismatchError, PermissionDeniedError, SeedNotFoundError
from skykey.gateway import SigningGateway
from skykey.permissions import Permission, PermCategory, PermissionsProvider, PermType
from skykey.registry import RegistryEntry, derive_discoverable_file_tweak, verify_registry_entry
from skykey.seed_store import InMemorySeedStore, salt_seed_for_dev_mode
from skykey.revision import RevisionNumberCache
from skykey.skydb import get_encrypted_path_seed_internal, set_json_encrypted

APP = "app.hns"
OTHER_PATH = "dac.hns/data/file.json"


def grant(gateway: SigningGateway, path: str, category: PermCategory, perm_type: PermType) -> None:
    gateway.permissions.grant(Permission(APP, path, category, perm_type))


class TestSession:
    def test_logged_out(self, gateway):
        with pytest.raises(SeedNotFoundError):
            gateway.user_id()
        with pytest.raises(SeedNotFoundError):
            gateway.sign_message(b"hello")

    def test_check_login_logged_out(self, gateway):
        perm = Permission(APP, APP, PermCategory.HIDDEN, PermType.READ)
        logged_in, response = gateway.check_login([perm])
        assert not logged_in
        assert response.granted_permissions == []
        assert response.failed_permissions == [perm]

    def test_login_and_user_id(self, logged_in_gateway, seed):
        assert logged_in_gateway.user_id() == derive_identity_keypair(seed).public_key

    def test_check_login(self, logged_in_gateway):
        own = Permission(APP, f"{APP}/file.json", PermCategory.HIDDEN, PermType.WRITE)
        other = Permission(APP, OTHER_PATH, PermCategory.HIDDEN, PermType.WRITE)
        logged_in, response = logged_in_gateway.check_login([own, other])
        assert logged_in
        assert response.granted_permissions == [own]
        assert response.failed_permissions == [other]

    def test_logout(self, logged_in_gateway):
        logged_in_gateway.logout()
        with pytest.raises(SeedNotFoundError):
            logged_in_gateway.user_id()

    async def test_logout_forgets_revisions(self, logged_in_gateway, seed):
        path = f"{APP}/file.json"
        await logged_in_gateway.set_json_encrypted(path, {"a": 1}, APP)
        public_key = logged_in_gateway.user_id()
        data_key = derive_encrypted_file_tweak(get_encrypted_path_seed_internal(seed, path, False))
        assert logged_in_gateway.revisions.get_revision(public_key, data_key) == 0

        logged_in_gateway.logout()
        assert logged_in_gateway.revisions.get_revision(public_key, data_key) is None


class TestEncryptedPathSeed:
    def test_denied(self, logged_in_gateway):
        with pytest.raises(PermissionDeniedError) as exc_info:
            logged_in_gateway.get_encrypted_path_seed(OTHER_PATH, False, APP)

        error = exc_info.value
        assert error.requestor == APP
        assert error.path == OTHER_PATH
        assert error.category == PermCategory.HIDDEN
        assert error.perm_type == PermType.READ

    def test_own_domain(self, logged_in_gateway, seed):
        path = f"{APP}/dir"
        assert logged_in_gateway.get_encrypted_path_seed(path, True, APP) == (
            get_encrypted_path_seed_internal(seed, path, True)
        )

    def test_granted_directory_covers_files(self, logged_in_gateway, seed):
        grant(logged_in_gateway, "dac.hns/data", PermCategory.HIDDEN, PermType.READ)
        assert logged_in_gateway.get_encrypted_path_seed(OTHER_PATH, False, APP) == (
            get_encrypted_path_seed_internal(seed, OTHER_PATH, False)
        )

    def test_write_grant_does_not_give_read(self, logged_in_gateway):
        grant(logged_in_gateway, OTHER_PATH, PermCategory.HIDDEN, PermType.WRITE)
        with pytest.raises(PermissionDeniedError):
            logged_in_gateway.get_encrypted_path_seed(OTHER_PATH, False, APP)

    def test_logged_out_checked_first(self, gateway):
        with pytest.raises(SeedNotFoundError):
            gateway.get_encrypted_path_seed(OTHER_PATH, False, APP)


class TestSignRegistryEntry:
    def test_sign_discoverable(self, logged_in_gateway):
        grant(logged_in_gateway, OTHER_PATH, PermCategory.DISCOVERABLE, PermType.WRITE)
        entry = RegistryEntry(derive_discoverable_file_tweak(OTHER_PATH), b"data", 0)

        signature = logged_in_gateway.sign_registry_entry(entry, OTHER_PATH, APP)
        assert verify_registry_entry(entry, signature, logged_in_gateway.user_id())

    def test_data_key_mismatch(self, logged_in_gateway):
        grant(logged_in_gateway, "dac.hns", PermCategory.DISCOVERABLE, PermType.WRITE)
        entry = RegistryEntry(derive_discoverable_file_tweak("dac.hns/other.json"), b"data", 0)
        with pytest.raises(DataKeyMismatchError):
            logged_in_gateway.sign_registry_entry(entry, OTHER_PATH, APP)

    def test_mismatch_reported_before_permission(self, logged_in_gateway):
        entry = RegistryEntry(derive_discoverable_file_tweak("dac.hns/other.json"), b"data", 0)
        with pytest.raises(DataKeyMismatchError):
            logged_in_gateway.sign_registry_entry(entry, OTHER_PATH, APP)

    def test_no_write_permission(self, logged_in_gateway):
        grant(logged_in_gateway, OTHER_PATH, PermCategory.DISCOVERABLE, PermType.READ)
        entry = RegistryEntry(derive_discoverable_file_tweak(OTHER_PATH), b"data", 0)
        with pytest.raises(PermissionDeniedError):
            logged_in_gateway.sign_registry_entry(entry, OTHER_PATH, APP)

    def test_sign_encrypted(self, logged_in_gateway, seed):
        grant(logged_in_gateway, "dac.hns", PermCategory.HIDDEN, PermType.WRITE)
        data_key = derive_encrypted_file_tweak(get_encrypted_path_seed_internal(seed, OTHER_PATH, False))
        entry = RegistryEntry(data_key, b"ciphertext", 7)

        signature = logged_in_gateway.sign_encrypted_registry_entry(entry, OTHER_PATH, APP)
        assert verify_registry_entry(entry, signature, logged_in_gateway.user_id())

    def test_discoverable_grant_does_not_sign_hidden(self, logged_in_gateway, seed):
        grant(logged_in_gateway, "dac.hns", PermCategory.DISCOVERABLE, PermType.WRITE)
        data_key = derive_encrypted_file_tweak(get_encrypted_path_seed_internal(seed, OTHER_PATH, False))
        with pytest.raises(PermissionDeniedError):
            logged_in_gateway.sign_encrypted_registry_entry(RegistryEntry(data_key, b"", 0), OTHER_PATH, APP)


class TestMessages:
    def test_sign_and_verify(self, logged_in_gateway):
        signature = logged_in_gateway.sign_message(b"hello")
        assert logged_in_gateway.verify_message(b"hello", signature, logged_in_gateway.user_id())
        assert not logged_in_gateway.verify_message(b"bye", signature, logged_in_gateway.user_id())


class TestJSONEncrypted:
    async def test_denied(self, logged_in_gateway):
        with pytest.raises(PermissionDeniedError):
            await logged_in_gateway.set_json_encrypted(OTHER_PATH, {"a": 1}, APP)
        with pytest.raises(PermissionDeniedError):
            await logged_in_gateway.get_json_encrypted(OTHER_PATH, APP)

    async def test_round_trip(self, logged_in_gateway):
        grant(logged_in_gateway, "dac.hns/data", PermCategory.HIDDEN, PermType.WRITE)
        grant(logged_in_gateway, "dac.hns/data", PermCategory.HIDDEN, PermType.READ)

        await logged_in_gateway.set_json_encrypted(OTHER_PATH, {"a": 1}, APP)
        response = await logged_in_gateway.get_json_encrypted(OTHER_PATH, APP)
        assert response.data == {"a": 1}

    async def test_read_catches_up_with_other_writers(self, logged_in_gateway, seed):
        path = f"{APP}/shared.json"
        await logged_in_gateway.set_json_encrypted(path, {"v": 1}, APP)
        await set_json_encrypted(logged_in_gateway.registry, RevisionNumberCache(), seed, path, {"v": 2})

        assert (await logged_in_gateway.get_json_encrypted(path, APP)).data == {"v": 2}
        await logged_in_gateway.set_json_encrypted(path, {"v": 3}, APP)
        assert (await logged_in_gateway.get_json_encrypted(path, APP)).data == {"v": 3}

    async def test_write_only(self, logged_in_gateway):
        grant(logged_in_gateway, OTHER_PATH, PermCategory.HIDDEN, PermType.WRITE)
        await logged_in_gateway.set_json_encrypted(OTHER_PATH, {"a": 1}, APP)
        with pytest.raises(PermissionDeniedError):
            await logged_in_gateway.get_json_encrypted(OTHER_PATH, APP)


class TestDevMode:
    @pytest.fixture
    def dev_gateway(self, tmp_path, clean_env, seed):
        gateway = SigningGateway(
            seed_store=InMemorySeedStore(),
            permissions=PermissionsProvider(),
            settings=SkykeySettings(dev_mode=True, data_dir=tmp_path),
        )
        gateway.login(seed)
        return gateway

    def test_seed_is_salted(self, dev_gateway, seed):
        assert dev_gateway.seed_store.get_seed() == salt_seed_for_dev_mode(seed)
        assert dev_gateway.user_id() != derive_identity_keypair(seed).public_key

    def test_all_permissions_granted(self, dev_gateway):
        perm = Permission(APP, OTHER_PATH, PermCategory.HIDDEN, PermType.READ)
        logged_in, response = dev_gateway.check_login([perm])
        assert logged_in
        assert response.granted_permissions == [perm]
        dev_gateway.get_encrypted_path_seed(OTHER_PATH, False, APP)


def test_from_settings_persists_login(settings, seed):
    SigningGateway.from_settings(settings).login(seed)
    assert settings.seed_file.exists()

    reloaded = SigningGateway.from_settings(settings)
    assert reloaded.user_id() == derive_identity_keypair(seed).public_key

    reloaded.permissions.grant(Permission(APP, OTHER_PATH, PermCategory.HIDDEN, PermType.READ))
    assert SigningGateway.from_settings(settings).get_encrypted_path_seed(OTHER_PATH, False, APP)
