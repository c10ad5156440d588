"""
Seed Store
Where the logged-in user's seed lives between calls.

The seed is the only secret. Everything else is derived from it on each
call and never stored.

In developer mode the saved seed is salted first, so keys and data made
while developing never collide with the user's real identity.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from skykey.crypto import sha512
from skykey.errors import InvalidInputError, InvalidSeedLengthError
from skykey.seed import SEED_LENGTH

logger = logging.getLogger(__name__)

SALT_DEVELOPER_MODE = "developer mode"


class SeedStore(ABC):
    """Persistent storage for the user seed."""

    @abstractmethod
    def get_seed(self) -> bytes | None:
        """Return the stored seed, or None if the user is logged out."""

    @abstractmethod
    def save_seed(self, seed: bytes) -> None:
        """Store the seed, replacing any previous one."""

    @abstractmethod
    def clear_seed(self) -> None:
        """Remove the stored seed. Does nothing if none is stored."""


class InMemorySeedStore(SeedStore):
    """Seed held in memory. Lost when the process exits."""

    def __init__(self):
        self._seed: bytes | None = None

    def get_seed(self) -> bytes | None:
        return self._seed

    def save_seed(self, seed: bytes) -> None:
        self._seed = bytes(seed)

    def clear_seed(self) -> None:
        self._seed = None


class FileSeedStore(SeedStore):
    """
    Seed stored base64-encoded in a single file.

    The file is created with owner-only permissions. Anyone who can read it
    can act as the user.

    Args:
        path: The seed file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def get_seed(self) -> bytes | None:
        """
        Raises:
            InvalidInputError: If the file is not base64.
            InvalidSeedLengthError: If the stored seed is not 16 bytes.
        """
        if not self.path.exists():
            return None
        try:
            seed = base64.b64decode(self.path.read_text().strip(), validate=True)
        except binascii.Error as e:
            raise InvalidInputError(f"Seed file {self.path} is corrupt: {e}") from e
        if len(seed) != SEED_LENGTH:
            raise InvalidSeedLengthError(
                f"Stored seed should be length '{SEED_LENGTH}', was '{len(seed)}'"
            )
        return seed

    def save_seed(self, seed: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(mode=0o600, exist_ok=True)
        self.path.write_text(base64.b64encode(seed).decode())

    def clear_seed(self) -> None:
        self.path.unlink(missing_ok=True)


def salt_seed_for_dev_mode(seed: bytes) -> bytes:
    """Derive the developer-mode seed that stands in for a real seed."""
    return sha512(sha512(SALT_DEVELOPER_MODE) + sha512(seed))[:SEED_LENGTH]


def save_seed(store: SeedStore, seed: bytes, dev_mode: bool = False) -> bytes:
    """
    Log a user in by storing their seed.

    Args:
        store: Where to keep the seed.
        seed: The 16-byte user seed, e.g. from phrase_to_seed.
        dev_mode: Store the developer-mode seed instead of the real one.

    Returns:
        The seed that was actually stored.

    Raises:
        InvalidSeedLengthError: If seed is not 16 bytes.
    """
    if len(seed) != SEED_LENGTH:
        raise InvalidSeedLengthError(f"Input seed should be length '{SEED_LENGTH}', was '{len(seed)}'")

    if dev_mode:
        logger.info("Developer mode: storing salted seed")
        seed = salt_seed_for_dev_mode(seed)

    store.save_seed(seed)
    return seed
