"""
Permissions
Capability grants for apps (requestors) on paths, stored as bitfields.

A permission is (requestor, path, category, type). For each
(requestor, path) pair the store holds one integer; each
(category, type) pair owns one bit of it:

  bit = (category - 1) * 16 + type

Each category reserves 16 bits, so new permission types never collide
with another category's bits.

Rules:
  - A requestor always has every permission on its own domain.
  - A grant on a path covers every path below it, never above it.
  - Grants are append-only: granting ORs a bit in, nothing clears bits.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from skykey.errors import InvalidInputError, InvalidPathError
from skykey.util import get_parent_path, get_path_domain, require_sanitized_path, sanitize_path

logger = logging.getLogger(__name__)

# Bits reserved per category
CATEGORY_STRIDE = 16


class PermCategory(IntEnum):
    """Kind of data a permission covers."""
    DISCOVERABLE = 1
    HIDDEN = 2
    LEGACY_SKYID = 3


class PermType(IntEnum):
    """Kind of access a permission grants."""
    READ = 1
    WRITE = 2


@dataclass(frozen=True)
class Permission:
    """A requested capability."""
    requestor: str
    path: str
    category: PermCategory
    perm_type: PermType


@dataclass
class CheckPermissionsResponse:
    """Result of a batch permission check."""
    granted_permissions: list[Permission] = field(default_factory=list)
    failed_permissions: list[Permission] = field(default_factory=list)


def bit_position(category: PermCategory, perm_type: PermType) -> int:
    """Bit index of a (category, type) pair."""
    if category < 1:
        raise InvalidInputError(f"Permission category {category} is below the first category")
    if not 0 <= perm_type < CATEGORY_STRIDE:
        raise InvalidInputError(f"Permission type {perm_type} exceeds the category stride")
    return (int(category) - 1) * CATEGORY_STRIDE + int(perm_type)


def create_permission_bitfield(category: PermCategory, perm_type: PermType) -> int:
    """Bitfield with only the bit of a (category, type) pair set."""
    return 1 << bit_position(category, perm_type)


def create_permission_key(requestor: str, path: str) -> str:
    """
    Build the storage key for a (requestor, path) pair.

    Both parts are sanitized first, so "app.hns/" and "app.hns" map to the
    same key.

    Raises:
        InvalidPathError: If the requestor or path is invalid.
    """
    sanitized_requestor = sanitize_path(requestor)
    if sanitized_requestor is None:
        raise InvalidPathError(f"Invalid requestor: '{requestor}'")
    sanitized_path = sanitize_path(path)
    if sanitized_path is None:
        raise InvalidPathError(f"Invalid path: '{path}'")
    return f"[{sanitized_requestor}],[{sanitized_path}]"


def readable_permission(perm: Permission) -> str:
    """Human-readable form of a permission."""
    return (
        f"{perm.requestor} can {perm.perm_type.name.lower()} "
        f"{perm.category.name.lower()} files at {perm.path}"
    )


class PermissionStore(ABC):
    """Persistent storage for permission bitfields."""

    @abstractmethod
    def get_bitfield(self, key: str) -> int | None:
        """Return the stored bitfield for a key, or None if there is none."""

    @abstractmethod
    def set_bitfield(self, key: str, bitfield: int) -> None:
        """Replace the stored bitfield for a key."""


class InMemoryPermissionStore(PermissionStore):
    """Permission store backed by a dict. Lost when the process exits."""

    def __init__(self):
        self._bitfields: dict[str, int] = {}

    def get_bitfield(self, key: str) -> int | None:
        return self._bitfields.get(key)

    def set_bitfield(self, key: str, bitfield: int) -> None:
        self._bitfields[key] = bitfield


class FilePermissionStore(PermissionStore):
    """
    Permission store backed by a single JSON file.

    Args:
        path: The JSON file. Created on first write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text())

    def get_bitfield(self, key: str) -> int | None:
        return self._load().get(key)

    def set_bitfield(self, key: str, bitfield: int) -> None:
        bitfields = self._load()
        bitfields[key] = bitfield
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(bitfields, indent=2, sort_keys=True))


class PermissionsProvider:
    """
    Checks and grants permissions against a PermissionStore.

    Args:
        store: Where bitfields live. Defaults to an in-memory store.
    """

    def __init__(self, store: PermissionStore | None = None):
        self.store = store or InMemoryPermissionStore()

    def check_permission(self, perm: Permission) -> bool:
        """
        Check a single permission.

        Walks the path and then each ancestor, returning True at the first
        one with the bit granted.

        Raises:
            InvalidPathError: If the requestor or path is invalid.
        """
        requestor = sanitize_path(perm.requestor)
        if requestor is None:
            raise InvalidPathError(f"Invalid requestor: '{perm.requestor}'")
        path = require_sanitized_path(perm.path)

        # Requestors may do anything on their own domain
        if requestor == get_path_domain(path):
            return True

        bit = create_permission_bitfield(perm.category, perm.perm_type)
        current: str | None = path
        while current:
            stored = self.store.get_bitfield(create_permission_key(requestor, current))
            if stored is not None and stored & bit:
                return True
            current = get_parent_path(current)
        return False

    def grant(self, perm: Permission) -> int:
        """
        Grant a permission, keeping every bit already granted.

        Returns:
            The new stored bitfield.
        """
        key = create_permission_key(perm.requestor, perm.path)
        bitfield = (self.store.get_bitfield(key) or 0) | create_permission_bitfield(
            perm.category, perm.perm_type
        )
        self.store.set_bitfield(key, bitfield)
        logger.debug("Granted: %s", readable_permission(perm))
        return bitfield

    def check_permissions(self, perms: list[Permission], dev: bool = False) -> CheckPermissionsResponse:
        """
        Check a batch of permissions independently.

        Args:
            perms: The requested permissions.
            dev: Developer mode. Every permission is granted.

        Returns:
            The permissions split into granted and failed. An invalid
            permission is reported as failed; it never aborts the batch.
        """
        response = CheckPermissionsResponse()
        if dev:
            response.granted_permissions.extend(perms)
            return response

        for perm in perms:
            try:
                granted = self.check_permission(perm)
            except InvalidInputError as e:
                logger.warning("Invalid permission %r: %s", perm, e)
                granted = False
            if granted:
                response.granted_permissions.append(perm)
            else:
                response.failed_permissions.append(perm)
        return response

    def set_permissions(self, perms: list[Permission]) -> None:
        """Grant each of the given permissions."""
        for perm in perms:
            self.grant(perm)
