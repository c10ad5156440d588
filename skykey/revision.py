"""
Revision Number Cache
Serializes read-increment-write of registry revisions per (identity, data key).

The registry accepts any strictly higher revision. Two writers that both
read revision N would both publish N+1, and the second would silently
overwrite the first. So every write to a slot goes through
with_exclusive_revision:

  Idle -> Locked -> Committed | Aborted -> Idle

  1. Try the slot's lock. If it is held, fail now (never wait).
  2. Read the cached revision (or fetch it), add 1.
  3. Run the write with the new revision.
  4. On success, cache the new revision. On failure, keep the old one,
     so a retry reuses the same baseline.
  5. Release the lock either way.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from skykey.errors import ConcurrentWriteInProgressError, RevisionOverflowError
from skykey.registry import MAX_REVISION

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Baseline when a slot has never been written: the first revision is 0
NO_REVISION = -1


@dataclass
class CachedRevisionEntry:
    """Cached revision and lock for one slot. revision is None until known."""
    revision: int | None = None
    mutex: asyncio.Lock = field(default_factory=asyncio.Lock)


def increment_revision(revision: int) -> int:
    """
    Return revision + 1.

    Raises:
        RevisionOverflowError: If the result exceeds MAX_REVISION.
    """
    revision += 1
    if revision > MAX_REVISION:
        raise RevisionOverflowError(
            "Current entry already has maximum allowed revision, could not update the entry"
        )
    return revision


class RevisionNumberCache:
    """
    Per-slot revision numbers and locks for one process.

    Pass one instance to everything that reads or writes on behalf of the
    same identities. Separate instances do not coordinate with each other.

    One entry is kept for every slot ever touched, until clear(). A
    long-running process that writes to many paths should clear it
    between sessions, as logout does.
    """

    def __init__(self):
        self._entries: dict[tuple[str, str], CachedRevisionEntry] = {}

    def _entry(self, identity: str, data_key: str) -> CachedRevisionEntry:
        return self._entries.setdefault((identity, data_key), CachedRevisionEntry())

    def get_revision(self, identity: str, data_key: str) -> int | None:
        """Return the last committed revision for a slot, or None if unknown."""
        entry = self._entries.get((identity, data_key))
        return entry.revision if entry else None

    def is_locked(self, identity: str, data_key: str) -> bool:
        """Whether a write to the slot is in flight."""
        entry = self._entries.get((identity, data_key))
        return entry is not None and entry.mutex.locked()

    async def observe_revision(self, identity: str, data_key: str, revision: int) -> None:
        """
        Record a revision seen on a read.

        Waits for any write in flight, then raises the cached revision to
        revision. It never lowers it.
        """
        entry = self._entry(identity, data_key)
        async with entry.mutex:
            if entry.revision is None or revision > entry.revision:
                entry.revision = revision

    def clear(self) -> None:
        """Forget all cached revisions. Slots with a write in flight are kept."""
        self._entries = {k: v for k, v in self._entries.items() if v.mutex.locked()}

    async def with_exclusive_revision(
        self,
        identity: str,
        data_key: str,
        fn: Callable[[int], Awaitable[T]],
        fetch_revision: Callable[[], Awaitable[int | None]] | None = None,
    ) -> T:
        """
        Run fn with the next revision number, holding the slot's lock.

        Args:
            identity: Hex public key that owns the slot.
            data_key: Hex data key of the slot.
            fn: Builds, signs and posts the entry for the given revision.
            fetch_revision: Returns the slot's current revision (None if
                empty). Used only when no revision is cached yet.

        Returns:
            Whatever fn returns.

        Raises:
            ConcurrentWriteInProgressError: If the slot is already locked.
            RevisionOverflowError: If the slot is at MAX_REVISION.
        """
        entry = self._entry(identity, data_key)

        # No await between the check and the acquire, so nothing can slip in
        if entry.mutex.locked():
            raise ConcurrentWriteInProgressError(
                f"A write to data key '{data_key}' is already in progress"
            )

        async with entry.mutex:
            baseline = entry.revision
            if baseline is None and fetch_revision is not None:
                baseline = await fetch_revision()
            if baseline is None:
                baseline = NO_REVISION

            new_revision = increment_revision(baseline)
            try:
                result = await fn(new_revision)
            except BaseException:
                logger.debug("Write to %s aborted, revision stays at %s", data_key, entry.revision)
                raise

            entry.revision = new_revision
            logger.debug("Committed revision %d for %s", new_revision, data_key)
            return result
