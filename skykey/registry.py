"""
Registry
Signed, versioned registry entries and the client interface for posting them.

The registry is a mutable slot per (public key, data key). An entry holds
data and a revision number. The network accepts a new entry for a slot
only if it is signed by the public key and its revision is higher than
the current one.

What gets signed:

  BLAKE2b-256( data_key_bytes
               || uint64_le(len(data)) || data
               || uint64_le(revision) )

Data keys are hex. Discoverable files use the hash of their path
(derive_discoverable_file_tweak); hidden files use the tweak derived from
their path seed (see encrypted_files).
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from skykey.crypto import verify_signature
from skykey.errors import InvalidInputError, RemoteFailureError
from skykey.util import from_hex, require_sanitized_path, to_hex

logger = logging.getLogger(__name__)

MAX_REVISION = 2**64 - 1
DATA_KEY_LENGTH = 32
DISCOVERABLE_TWEAK_VERSION = 1


@dataclass(frozen=True)
class RegistryEntry:
    """
    An unsigned registry entry.

    Attributes:
        data_key: Hex-encoded 32-byte data key.
        data: The entry payload.
        revision: Revision number, 0 to MAX_REVISION.
    """
    data_key: str
    data: bytes
    revision: int


@dataclass(frozen=True)
class SignedRegistryEntry:
    """A registry entry together with its signature."""
    entry: RegistryEntry
    signature: bytes


def _blake2b(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def _encode_uint64(value: int) -> bytes:
    return value.to_bytes(8, "little")


def hash_registry_entry(entry: RegistryEntry) -> bytes:
    """
    Hash a registry entry for signing.

    Raises:
        InvalidInputError: If the data key is not 32 hex bytes or the
            revision is out of range.
    """
    data_key = from_hex(entry.data_key, "dataKey")
    if len(data_key) != DATA_KEY_LENGTH:
        raise InvalidInputError(f"Expected data key of length {DATA_KEY_LENGTH}, was {len(data_key)}")
    if not 0 <= entry.revision <= MAX_REVISION:
        raise InvalidInputError(f"Revision {entry.revision} out of range")

    return _blake2b(
        data_key
        + _encode_uint64(len(entry.data)) + entry.data
        + _encode_uint64(entry.revision)
    )


def derive_discoverable_file_tweak(path: str) -> str:
    """
    Derive the hex data key of a discoverable (public) file from its path.

    Each path component is hashed separately, then the version byte and
    component hashes are hashed together.
    """
    components = require_sanitized_path(path).split("/")
    encoded = bytes([DISCOVERABLE_TWEAK_VERSION]) + b"".join(
        _blake2b(c.encode("utf-8")) for c in components
    )
    return to_hex(_blake2b(encoded))


def verify_registry_entry(entry: RegistryEntry, signature: bytes, public_key: str) -> bool:
    """Check that a signature over an entry was made by the public key."""
    try:
        digest = hash_registry_entry(entry)
    except InvalidInputError:
        return False
    return verify_signature(digest, signature, public_key)


class RegistryClient(ABC):
    """Remote registry. Both calls may fail with RemoteFailureError."""

    @abstractmethod
    async def get_entry(self, public_key: str, data_key: str) -> SignedRegistryEntry | None:
        """
        Fetch the latest entry for a slot.

        Returns:
            The signed entry, or None if the slot is empty.
        """

    @abstractmethod
    async def post_signed_entry(self, public_key: str, entry: RegistryEntry, signature: bytes) -> None:
        """Publish a signed entry. The revision must exceed the current one."""


class InMemoryRegistryClient(RegistryClient):
    """
    Registry held in memory, enforcing the network's acceptance rules.

    Suitable for tests and offline use.
    """

    def __init__(self):
        self._entries: dict[tuple[str, str], SignedRegistryEntry] = {}
        self.posts = 0

    async def get_entry(self, public_key: str, data_key: str) -> SignedRegistryEntry | None:
        return self._entries.get((public_key, data_key))

    async def post_signed_entry(self, public_key: str, entry: RegistryEntry, signature: bytes) -> None:
        if not verify_registry_entry(entry, signature, public_key):
            raise RemoteFailureError("Registry rejected entry: invalid signature")

        current = self._entries.get((public_key, entry.data_key))
        if current is not None and entry.revision <= current.entry.revision:
            raise RemoteFailureError(
                f"Registry rejected entry: revision {entry.revision} does not exceed "
                f"current revision {current.entry.revision}"
            )

        self._entries[(public_key, entry.data_key)] = SignedRegistryEntry(entry, signature)
        self.posts += 1
        logger.debug("Stored registry entry %s at revision %d", entry.data_key, entry.revision)
