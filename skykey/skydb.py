"""
SkyDB (internal)
Read and write encrypted JSON files in the registry, with no permission checks.

Only the gateway and the user's own data (settings, portal accounts)
call these directly. Apps go through the gateway, which checks
permissions first.

Writes run inside RevisionNumberCache.with_exclusive_revision, so there
is at most one write in flight per (identity, data key).
"""

import logging
from dataclasses import dataclass

from skykey.crypto import derive_identity_keypair, sign_with_private_key
from skykey.encrypted_files import (
    decrypt_json_file,
    derive_encrypted_file_key_entropy,
    derive_encrypted_file_tweak,
    derive_encrypted_path_seed_for_root,
    derive_root_path_seed,
    encrypt_json_file,
)
from skykey.errors import DataKeyMismatchError, InvalidInputError
from skykey.permissions import PermCategory
from skykey.registry import (
    RegistryClient,
    RegistryEntry,
    derive_discoverable_file_tweak,
    hash_registry_entry,
)
from skykey.revision import RevisionNumberCache

logger = logging.getLogger(__name__)


@dataclass
class EncryptedJSONResponse:
    """Decrypted JSON data, or None if the file does not exist."""
    data: dict | None


def get_encrypted_path_seed_internal(seed: bytes, path: str, is_directory: bool) -> str:
    """Derive a path seed from the user seed. Never expose this without a permission check."""
    return derive_encrypted_path_seed_for_root(derive_root_path_seed(seed), path, is_directory)


def derive_data_key(seed: bytes, path: str, category: PermCategory) -> str:
    """
    Compute the data key that a path must have under a category.

    Registry entries only ever hold files, so hidden paths are derived as
    files.
    """
    if category == PermCategory.DISCOVERABLE:
        return derive_discoverable_file_tweak(path)
    if category == PermCategory.HIDDEN:
        return derive_encrypted_file_tweak(get_encrypted_path_seed_internal(seed, path, False))
    raise InvalidInputError(f"Registry entries cannot be signed for category {category.name}")


def check_data_key(seed: bytes, entry: RegistryEntry, path: str, category: PermCategory) -> None:
    """
    Raises:
        DataKeyMismatchError: If the entry's data key does not belong to the path.
    """
    if entry.data_key != derive_data_key(seed, path, category):
        raise DataKeyMismatchError(
            f"Path '{path}' does not match the data key in the {category.name.lower()} registry entry"
        )


def sign_registry_entry_internal(seed: bytes, entry: RegistryEntry) -> bytes:
    """Sign an entry with the identity key. Callers must check permissions and data key first."""
    keypair = derive_identity_keypair(seed)
    return sign_with_private_key(keypair.private_key, hash_registry_entry(entry))


async def get_json_encrypted(
    registry: RegistryClient,
    seed: bytes,
    path: str,
    revisions: RevisionNumberCache | None = None,
) -> EncryptedJSONResponse:
    """
    Fetch and decrypt the JSON file at a hidden path.

    The fetched revision is recorded in revisions, so a later write
    continues from it even if another writer has moved the file on.

    Raises:
        InvalidPathError: If the path is invalid.
        InvalidInputError: If the stored file cannot be decrypted.
        RemoteFailureError: If the registry call fails.
    """
    logger.debug("Entered get_json_encrypted")

    public_key = derive_identity_keypair(seed).public_key
    path_seed = get_encrypted_path_seed_internal(seed, path, False)
    data_key = derive_encrypted_file_tweak(path_seed)

    signed = await registry.get_entry(public_key, data_key)
    if signed is None:
        return EncryptedJSONResponse(data=None)

    if revisions is not None:
        await revisions.observe_revision(public_key, data_key, signed.entry.revision)

    key = derive_encrypted_file_key_entropy(path_seed)
    return EncryptedJSONResponse(data=decrypt_json_file(signed.entry.data, key))


async def set_json_encrypted(
    registry: RegistryClient,
    revisions: RevisionNumberCache,
    seed: bytes,
    path: str,
    data: dict,
) -> EncryptedJSONResponse:
    """
    Encrypt and publish a JSON file at a hidden path.

    Raises:
        ConcurrentWriteInProgressError: If a write to the same file is in flight.
        RevisionOverflowError: If the file is at the maximum revision.
        RemoteFailureError: If the registry call fails.
    """
    logger.debug("Entered set_json_encrypted")

    if not isinstance(data, dict):
        raise InvalidInputError(f"Expected JSON object, was {type(data).__name__}")

    public_key = derive_identity_keypair(seed).public_key
    path_seed = get_encrypted_path_seed_internal(seed, path, False)
    data_key = derive_encrypted_file_tweak(path_seed)

    async def fetch_revision() -> int | None:
        signed = await registry.get_entry(public_key, data_key)
        return signed.entry.revision if signed else None

    async def write(revision: int) -> EncryptedJSONResponse:
        key = derive_encrypted_file_key_entropy(path_seed)
        entry = RegistryEntry(data_key=data_key, data=encrypt_json_file(data, key), revision=revision)

        check_data_key(seed, entry, path, PermCategory.HIDDEN)
        signature = sign_registry_entry_internal(seed, entry)

        await registry.post_signed_entry(public_key, entry, signature)
        return EncryptedJSONResponse(data=data)

    return await revisions.with_exclusive_revision(public_key, data_key, write, fetch_revision)
