"""
Skykey: Seed-Derived Identity
Turns one recovery phrase into every key a user needs, and signs for apps
only what they have been granted.

Layers:
1. Seed: 15-word phrase <-> 16-byte seed, with checksum words
2. Keys: identity keypair, salted keypairs, message signatures
3. Path seeds: one-way tree of secrets for the hidden filesystem
4. Permissions: per-app grants on paths, inherited by sub-paths
5. Gateway: checks the grant, then derives and signs

Usage:
    from skykey import SigningGateway, phrase_to_seed
    gateway = SigningGateway.from_settings()
    gateway.login(phrase_to_seed("topic gambit bumper ..."))
    gateway.sign_message(b"hello")
"""

from skykey.seed import generate_phrase, phrase_to_seed, seed_to_phrase, validate_phrase
from skykey.crypto import KeyPair, derive_identity_keypair, derive_salted_keypair, sign_message, verify_message
from skykey.encrypted_files import derive_encrypted_path_seed, derive_encrypted_path_seed_for_root, derive_root_path_seed
from skykey.permissions import Permission, PermCategory, PermType, PermissionsProvider, CheckPermissionsResponse
from skykey.registry import RegistryEntry, RegistryClient, InMemoryRegistryClient
from skykey.revision import RevisionNumberCache
from skykey.seed_store import SeedStore, InMemorySeedStore, FileSeedStore
from skykey.gateway import SigningGateway
from skykey.config import SkykeySettings, get_settings
from skykey.errors import SkykeyError

__version__ = "0.1.0"
__all__ = [
    "generate_phrase",
    "phrase_to_seed",
    "seed_to_phrase",
    "validate_phrase",
    "KeyPair",
    "derive_identity_keypair",
    "derive_salted_keypair",
    "sign_message",
    "verify_message",
    "derive_root_path_seed",
    "derive_encrypted_path_seed_for_root",
    "derive_encrypted_path_seed",
    "Permission",
    "PermCategory",
    "PermType",
    "PermissionsProvider",
    "CheckPermissionsResponse",
    "RegistryEntry",
    "RegistryClient",
    "InMemoryRegistryClient",
    "RevisionNumberCache",
    "SeedStore",
    "InMemorySeedStore",
    "FileSeedStore",
    "SigningGateway",
    "SkykeySettings",
    "get_settings",
    "SkykeyError",
]
