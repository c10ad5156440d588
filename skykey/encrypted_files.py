"""
Encrypted Files
Path seeds for the hidden (encrypted) filesystem, and the files themselves.

Every path gets its own secret path seed, derived one segment at a time
from the user's root path seed:

  seed(child) = SHA-512( SHA-512("encrypted filesystem child")
                         || SHA-512(seed(parent) || is_dir || name) )

Each step is a one-way hash. Knowing a directory's seed lets you derive
everything below it, never anything above it or beside it. That is what
makes a directory seed safe to hand to an app: it delegates one subtree.

Directory seeds keep all 64 bytes. File seeds are cut to 32 bytes after
the last step, so a file seed can never be used to derive further.

From a file's path seed come:
  - the tweak, which is the registry data key of the file
  - the key entropy, which is the AES-256-GCM key of the file's contents

The root path seed is 32 bytes, not 64. Every path seed ever issued
depends on that length, so it must not change.
"""

import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from skykey.crypto import hash_with_salt, sha512
from skykey.errors import InvalidInputError, InvalidRootSeedLengthError
from skykey.padding import pad_to_bucket, unpad_from_bucket
from skykey.util import from_hex, require_sanitized_path, to_hex

ENCRYPTION_ROOT_PATH_SEED_BYTES_LENGTH = 32
ENCRYPTION_PATH_SEED_DIRECTORY_LENGTH = 64
ENCRYPTION_PATH_SEED_FILE_LENGTH = 32
ENCRYPTION_HIDDEN_FIELD_LENGTH = 32
ENCRYPTION_KEY_LENGTH = 32
NONCE_SIZE = 12  # AES-256-GCM standard

ENCRYPTED_JSON_VERSION = 1

# Descriptive salts that must never change.
SALT_ENCRYPTED_PATH_SEED = "encrypted filesystem path seed"
SALT_ENCRYPTED_CHILD = "encrypted filesystem child"
SALT_ENCRYPTED_TWEAK = "encrypted filesystem tweak"
SALT_ENCRYPTION_KEY = "encrypted filesystem key entropy"


def derive_root_path_seed(seed: bytes) -> bytes:
    """Derive the 32-byte root path seed from the user seed."""
    return hash_with_salt(seed, SALT_ENCRYPTED_PATH_SEED)[:ENCRYPTION_ROOT_PATH_SEED_BYTES_LENGTH]


def derive_encrypted_path_seed_for_root(root_seed: bytes, sub_path: str, is_directory: bool) -> str:
    """
    Derive the path seed for a path, starting at the root path seed.

    Args:
        root_seed: The 32 raw bytes of the root path seed.
        sub_path: The full path, e.g. "app.hns/dir/file.json".
        is_directory: Whether the last segment is a directory.

    Returns:
        The hex-encoded path seed (64 bytes for directories, 32 for files).

    Raises:
        InvalidRootSeedLengthError: If root_seed is not 32 bytes.
        InvalidPathError: If the path is empty or degenerate.
    """
    if len(root_seed) != ENCRYPTION_ROOT_PATH_SEED_BYTES_LENGTH:
        raise InvalidRootSeedLengthError(
            f"Expected root path seed bytes of length "
            f"'{ENCRYPTION_ROOT_PATH_SEED_BYTES_LENGTH}', was '{len(root_seed)}'"
        )
    return _derive_path_seed(root_seed, sub_path, is_directory)


def derive_encrypted_path_seed(path_seed: str, sub_path: str, is_directory: bool) -> str:
    """
    Continue a derivation from a directory path seed.

    derive_encrypted_path_seed(seed_of("a"), "b", d) equals the seed for
    "a/b" derived from the root.

    Raises:
        InvalidInputError: If path_seed is not a 64-byte directory seed.
        InvalidPathError: If the sub path is empty or degenerate.
    """
    seed_bytes = from_hex(path_seed, "path_seed")
    if len(seed_bytes) != ENCRYPTION_PATH_SEED_DIRECTORY_LENGTH:
        raise InvalidInputError(
            f"Expected directory path seed of length "
            f"'{ENCRYPTION_PATH_SEED_DIRECTORY_LENGTH}', was '{len(seed_bytes)}'"
        )
    return _derive_path_seed(seed_bytes, sub_path, is_directory)


def _derive_path_seed(seed_bytes: bytes, sub_path: str, is_directory: bool) -> str:
    names = require_sanitized_path(sub_path, "subPath").split("/")

    for index, name in enumerate(names):
        directory = is_directory if index == len(names) - 1 else True
        derivation = sha512(seed_bytes + bytes([1 if directory else 0]) + name.encode("utf-8"))
        seed_bytes = sha512(sha512(SALT_ENCRYPTED_CHILD) + derivation)

    if not is_directory:
        seed_bytes = seed_bytes[:ENCRYPTION_PATH_SEED_FILE_LENGTH]
    return to_hex(seed_bytes)


def derive_encrypted_file_tweak(path_seed: str) -> str:
    """Derive the hex registry data key of an encrypted file from its path seed."""
    seed_bytes = from_hex(path_seed, "path_seed")
    return to_hex(hash_with_salt(seed_bytes, SALT_ENCRYPTED_TWEAK)[:ENCRYPTION_HIDDEN_FIELD_LENGTH])


def derive_encrypted_file_key_entropy(path_seed: str) -> bytes:
    """Derive the 32-byte encryption key of an encrypted file from its path seed."""
    seed_bytes = from_hex(path_seed, "path_seed")
    return hash_with_salt(seed_bytes, SALT_ENCRYPTION_KEY)[:ENCRYPTION_KEY_LENGTH]


def encrypt_json_file(data: dict, key: bytes) -> bytes:
    """
    Pad and encrypt a JSON object.

    The plaintext is a versioned JSON envelope, padded to a bucket size,
    then sealed with AES-256-GCM. Output is nonce || ciphertext.
    """
    envelope = {"version": ENCRYPTED_JSON_VERSION, "data": data}
    plaintext = pad_to_bucket(json.dumps(envelope, separators=(",", ":")).encode("utf-8"))
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_json_file(encrypted: bytes, key: bytes) -> dict:
    """
    Decrypt a file produced by encrypt_json_file.

    Raises:
        InvalidInputError: If the data is truncated, fails authentication,
            or has an unknown envelope version.
    """
    if len(encrypted) <= NONCE_SIZE:
        raise InvalidInputError("Encrypted file is too short")
    nonce, ciphertext = encrypted[:NONCE_SIZE], encrypted[NONCE_SIZE:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise InvalidInputError("Could not decrypt file: wrong key or corrupted data") from e

    envelope = json.loads(unpad_from_bucket(plaintext).decode("utf-8"))
    if envelope.get("version") != ENCRYPTED_JSON_VERSION:
        raise InvalidInputError(f"Unsupported encrypted file version {envelope.get('version')!r}")
    return envelope["data"]
