"""
Skykey: Integration Tests
Tests the full flow: phrase -> login -> grants -> signing and encrypted data.
Tests that an app can only reach what it was granted, across restarts.
"""

import asyncio
import shutil
import sys
from pathlib import Path

# Add parent to path for local development
sys.path.insert(0, str(Path(__file__).parent.parent))

from skykey import (
    InMemoryRegistryClient,
    Permission,
    PermCategory,
    PermType,
    RegistryEntry,
    SigningGateway,
    SkykeySettings,
    derive_encrypted_path_seed,
    generate_phrase,
    phrase_to_seed,
    seed_to_phrase,
)
from skykey.errors import PermissionDeniedError
from skykey.registry import derive_discoverable_file_tweak, verify_registry_entry
from skykey.skydb import get_encrypted_path_seed_internal

TEST_PHRASE = "topic gambit bumper lyrics etched dime going mocked abbey scrub irate depth absorb bias awful"
TEST_DATA_DIR = Path(__file__).parent / "test-skykey-data"


def setup():
    """Clean up test directories."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)


def setup_module():
    setup()


def teardown_module():
    setup()


def make_gateway(name: str, registry=None) -> SigningGateway:
    settings = SkykeySettings(dev_mode=False, data_dir=TEST_DATA_DIR / name)
    return SigningGateway.from_settings(settings, registry=registry)


def test_phrase_recovery():
    """Test that a lost phrase is recovered from the stored seed."""
    print("Testing phrase recovery...", end=" ")
    for _ in range(10):
        phrase = generate_phrase()
        assert seed_to_phrase(phrase_to_seed(phrase)) == phrase
    assert seed_to_phrase(phrase_to_seed(TEST_PHRASE.upper())) == TEST_PHRASE
    print("PASS")


def test_login_survives_restart():
    """Test that the user stays logged in across gateway instances."""
    print("Testing login across restart...", end=" ")
    gateway = make_gateway("restart")
    gateway.login(phrase_to_seed(TEST_PHRASE))
    user_id = gateway.user_id()

    # New instance, same data dir (simulates restart)
    gateway2 = make_gateway("restart")
    assert gateway2.user_id() == user_id

    gateway2.logout()
    logged_in, _ = make_gateway("restart").check_login([])
    assert not logged_in
    print("PASS")


def test_delegated_directory():
    """Test that an app with a directory seed derives the same file seeds as the user."""
    print("Testing delegated directory seed...", end=" ")
    seed = phrase_to_seed(TEST_PHRASE)
    gateway = make_gateway("delegate")
    gateway.login(seed)
    gateway.permissions.grant(Permission("app.hns", "dac.hns/shared", PermCategory.HIDDEN, PermType.READ))

    directory_seed = gateway.get_encrypted_path_seed("dac.hns/shared", True, "app.hns")
    file_seed = derive_encrypted_path_seed(directory_seed, "notes/today.json", False)
    assert file_seed == get_encrypted_path_seed_internal(seed, "dac.hns/shared/notes/today.json", False)

    # The directory above stays out of reach
    try:
        gateway.get_encrypted_path_seed("dac.hns", True, "app.hns")
        raise AssertionError("Parent directory seed should have been denied")
    except PermissionDeniedError:
        pass
    print("PASS")


def test_signing_requires_grant():
    """Test that an app can sign only for paths it may write."""
    print("Testing signing requires grant...", end=" ")
    gateway = make_gateway("signing")
    gateway.login(phrase_to_seed(TEST_PHRASE))

    path = "dac.hns/profile.json"
    entry = RegistryEntry(derive_discoverable_file_tweak(path), b'{"name": "user"}', 0)

    try:
        gateway.sign_registry_entry(entry, path, "app.hns")
        raise AssertionError("Signing without a grant should have been denied")
    except PermissionDeniedError:
        pass

    gateway.permissions.grant(Permission("app.hns", path, PermCategory.DISCOVERABLE, PermType.WRITE))
    signature = gateway.sign_registry_entry(entry, path, "app.hns")
    assert verify_registry_entry(entry, signature, gateway.user_id())
    print("PASS")


def test_encrypted_json_across_restart():
    """Test that encrypted JSON written before a restart is readable after it."""
    print("Testing encrypted JSON across restart...", end=" ")
    registry = InMemoryRegistryClient()
    gateway = make_gateway("json", registry)
    gateway.login(phrase_to_seed(TEST_PHRASE))

    path = "app.hns/settings.json"
    asyncio.run(gateway.set_json_encrypted(path, {"theme": "dark"}, "app.hns"))

    # Fresh revision cache: the next write must continue from the registry
    gateway2 = make_gateway("json", registry)
    asyncio.run(gateway2.set_json_encrypted(path, {"theme": "light"}, "app.hns"))
    response = asyncio.run(gateway2.get_json_encrypted(path, "app.hns"))
    assert response.data == {"theme": "light"}
    assert registry.posts == 2
    print("PASS")


def main():
    setup()
    print("=" * 50)
    print("  Skykey Integration Tests")
    print("=" * 50)
    print()

    tests = [
        test_phrase_recovery,
        test_login_survives_restart,
        test_delegated_directory,
        test_signing_requires_grant,
        test_encrypted_json_across_restart,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed")

    # Cleanup
    setup()

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
