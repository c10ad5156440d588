"""
Skykey: Basic Usage Example

Demonstrates logging in with a recovery phrase and acting for an app.
The app never sees the seed. It gets signatures and path seeds only for
paths it has been granted.
"""

import asyncio
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from skykey import (
    Permission,
    PermCategory,
    PermType,
    RegistryEntry,
    SigningGateway,
    SkykeySettings,
    generate_phrase,
    validate_phrase,
)
from skykey.config import configure_logging
from skykey.errors import PermissionDeniedError
from skykey.registry import derive_discoverable_file_tweak


async def main():
    settings = SkykeySettings(data_dir=Path("./example-skykey"))
    configure_logging(settings)

    print("=" * 50)
    print("  Skykey: Seed-Derived Identity")
    print("=" * 50)

    # A new user writes this down. It is the only backup.
    phrase = generate_phrase()
    print(f"\nRecovery phrase: {phrase}")

    valid, error, seed = validate_phrase(phrase)
    print(f"Phrase valid: {valid} {error}")

    gateway = SigningGateway.from_settings(settings)
    gateway.login(seed)
    print(f"User ID: {gateway.user_id()}")

    app = "notes-app.hns"
    profile = "profile-dac.hns/profile.json"
    entry = RegistryEntry(derive_discoverable_file_tweak(profile), b'{"name": "me"}', 0)

    # Not granted yet
    print(f"\n{app} tries to sign {profile}...")
    try:
        gateway.sign_registry_entry(entry, profile, app)
        print("  ERROR: Should have been denied!")
    except PermissionDeniedError as e:
        print(f"  Correctly denied: {e}")

    # The user approves the app's request
    gateway.permissions.grant(Permission(app, profile, PermCategory.DISCOVERABLE, PermType.WRITE))
    signature = gateway.sign_registry_entry(entry, profile, app)
    print(f"  After grant, signature: {signature.hex()[:32]}...")

    # Apps may always use their own domain
    notes = f"{app}/notes/today.json"
    await gateway.set_json_encrypted(notes, {"text": "Built the prototype. It works."}, app)
    response = await gateway.get_json_encrypted(notes, app)
    print(f"\nEncrypted note read back: {response.data}")

    message_signature = gateway.sign_message(b"I own this account")
    ok = gateway.verify_message(b"I own this account", message_signature, gateway.user_id())
    print(f"Message signature verifies: {ok}")

    gateway.logout()

    # Cleanup
    import shutil
    shutil.rmtree("./example-skykey", ignore_errors=True)
    print("\nCleaned up example files.")


if __name__ == "__main__":
    asyncio.run(main())
