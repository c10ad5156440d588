"""
Signing Gateway
The one place where apps get signatures and secrets derived from the user seed.

Every operation on behalf of an app (the requestor) goes:
1. Load the seed (fail if logged out)
2. Check the requestor's permission on the path
3. Only then derive keys and sign or decrypt

An app never sees the seed or the identity private key. It gets
signatures over entries it is allowed to write, and path seeds for
subtrees it is allowed to read.
"""

import logging

from skykey.config import SkykeySettings, get_settings
from skykey.crypto import derive_identity_keypair
from skykey.crypto import sign_message as _sign_message
from skykey.crypto import verify_message as _verify_message
from skykey.errors import PermissionDeniedError, SeedNotFoundError
from skykey.permissions import (
    CheckPermissionsResponse,
    FilePermissionStore,
    Permission,
    PermCategory,
    PermissionsProvider,
    PermType,
)
from skykey.registry import InMemoryRegistryClient, RegistryClient, RegistryEntry
from skykey.revision import RevisionNumberCache
from skykey.seed_store import FileSeedStore, SeedStore, save_seed
from skykey.skydb import (
    EncryptedJSONResponse,
    check_data_key,
    get_encrypted_path_seed_internal,
    get_json_encrypted,
    set_json_encrypted,
    sign_registry_entry_internal,
)

logger = logging.getLogger(__name__)


class SigningGateway:
    """
    Permission-checked signing and encryption for apps.

    Args:
        seed_store: Holds the logged-in user's seed.
        permissions: Grants apps have been given.
        registry: Remote registry for encrypted JSON. Defaults to in-memory.
        revisions: Revision cache shared by every writer in this process.
        settings: Defaults to get_settings().
    """

    def __init__(
        self,
        seed_store: SeedStore,
        permissions: PermissionsProvider,
        registry: RegistryClient | None = None,
        revisions: RevisionNumberCache | None = None,
        settings: SkykeySettings | None = None,
    ):
        self.seed_store = seed_store
        self.permissions = permissions
        self.registry = registry or InMemoryRegistryClient()
        self.revisions = revisions or RevisionNumberCache()
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: SkykeySettings | None = None, registry: RegistryClient | None = None):
        """Build a gateway whose seed and permissions live in settings.data_dir."""
        settings = settings or get_settings()
        return cls(
            seed_store=FileSeedStore(settings.seed_file),
            permissions=PermissionsProvider(FilePermissionStore(settings.permissions_file)),
            registry=registry,
            settings=settings,
        )

    def _get_seed(self) -> bytes:
        seed = self.seed_store.get_seed()
        if seed is None:
            raise SeedNotFoundError("User seed not found")
        return seed

    def _require(self, requestor: str, path: str, category: PermCategory, perm_type: PermType) -> None:
        if self.settings.dev_mode:
            return
        if not self.permissions.check_permission(Permission(requestor, path, category, perm_type)):
            logger.warning(
                "Denied %s %s on '%s' to '%s'", perm_type.name, category.name, path, requestor
            )
            raise PermissionDeniedError(requestor, path, category, perm_type)

    # Session

    def login(self, seed: bytes) -> None:
        """Store the user seed. In developer mode the salted seed is stored instead."""
        save_seed(self.seed_store, seed, self.settings.dev_mode)
        logger.info("User logged in")

    def check_login(self, perms: list[Permission]) -> tuple[bool, CheckPermissionsResponse]:
        """
        Check whether a user is logged in and which of perms are granted.

        Returns:
            (logged_in, response). When logged out, every permission is failed.
        """
        logger.debug("Entered check_login")
        if self.seed_store.get_seed() is None:
            return False, CheckPermissionsResponse(failed_permissions=list(perms))
        return True, self.permissions.check_permissions(perms, dev=self.settings.dev_mode)

    def logout(self) -> None:
        """Remove the stored seed and forget cached revisions."""
        self.seed_store.clear_seed()
        self.revisions.clear()
        logger.info("User logged out")

    def user_id(self) -> str:
        """The user's identity public key, hex."""
        return derive_identity_keypair(self._get_seed()).public_key

    # Derivation and signing

    def get_encrypted_path_seed(self, path: str, is_directory: bool, requestor: str) -> str:
        """
        Give a requestor the path seed of a hidden file or directory.

        Raises:
            SeedNotFoundError: If no user is logged in.
            PermissionDeniedError: If the requestor cannot read hidden data at path.
        """
        logger.debug("Entered get_encrypted_path_seed")
        seed = self._get_seed()
        self._require(requestor, path, PermCategory.HIDDEN, PermType.READ)
        return get_encrypted_path_seed_internal(seed, path, is_directory)

    def sign_registry_entry(
        self,
        entry: RegistryEntry,
        path: str,
        requestor: str,
        category: PermCategory = PermCategory.DISCOVERABLE,
    ) -> bytes:
        """
        Sign a registry entry for the file at path.

        The entry's data key must be the one derived from path, so a grant
        on one path can't be used to sign entries for another.

        Raises:
            SeedNotFoundError: If no user is logged in.
            DataKeyMismatchError: If the data key does not belong to path.
            PermissionDeniedError: If the requestor cannot write at path.
        """
        logger.debug("Entered sign_registry_entry")
        seed = self._get_seed()
        check_data_key(seed, entry, path, category)
        self._require(requestor, path, category, PermType.WRITE)
        return sign_registry_entry_internal(seed, entry)

    def sign_encrypted_registry_entry(self, entry: RegistryEntry, path: str, requestor: str) -> bytes:
        """Sign a registry entry for the hidden file at path."""
        return self.sign_registry_entry(entry, path, requestor, PermCategory.HIDDEN)

    def sign_message(self, message: bytes) -> bytes:
        """Sign a message with the identity key."""
        logger.debug("Entered sign_message")
        return _sign_message(self._get_seed(), message)

    def verify_message(self, message: bytes, signature: bytes, public_key: str) -> bool:
        """Verify a signature made by sign_message. Never raises."""
        return _verify_message(message, signature, public_key)

    # Encrypted JSON

    async def get_json_encrypted(self, path: str, requestor: str) -> EncryptedJSONResponse:
        """
        Read the hidden JSON file at path.

        Raises:
            SeedNotFoundError: If no user is logged in.
            PermissionDeniedError: If the requestor cannot read hidden data at path.
        """
        seed = self._get_seed()
        self._require(requestor, path, PermCategory.HIDDEN, PermType.READ)
        return await get_json_encrypted(self.registry, seed, path, self.revisions)

    async def set_json_encrypted(self, path: str, data: dict, requestor: str) -> EncryptedJSONResponse:
        """
        Write the hidden JSON file at path.

        Raises:
            SeedNotFoundError: If no user is logged in.
            PermissionDeniedError: If the requestor cannot write hidden data at path.
            ConcurrentWriteInProgressError: If a write to the same file is in flight.
        """
        seed = self._get_seed()
        self._require(requestor, path, PermCategory.HIDDEN, PermType.WRITE)
        return await set_json_encrypted(self.registry, self.revisions, seed, path, data)
