"""
Errors
Every failure skykey reports has its own type.

InvalidInputError covers anything the caller can fix by correcting input
(phrases, paths, hex, key lengths). The remaining errors are raised by the
signing gateway, the revision coordinator and remote collaborators.
"""


class SkykeyError(Exception):
    """Base exception for all skykey errors."""


class InvalidInputError(SkykeyError, ValueError):
    """Malformed phrase, path, key or hex input."""


class PhraseError(InvalidInputError):
    """A seed phrase could not be decoded."""


class WrongWordCountError(PhraseError):
    """The phrase does not have exactly 15 words."""


class WordTooShortError(PhraseError):
    """A phrase word is shorter than its 3-letter prefix."""


class UnrecognizedWordError(PhraseError):
    """No dictionary word starts with the given prefix."""


class ChecksumWordOutOfRangeError(PhraseError):
    """The 13th word resolves outside the first 256 dictionary entries."""


class InvalidChecksumError(PhraseError):
    """The checksum words do not match the seed words."""


class InvalidSeedLengthError(InvalidInputError):
    """Seed bytes are not the expected length."""


class InvalidRootSeedLengthError(InvalidInputError):
    """Root path seed bytes are not the expected length."""


class InvalidPathError(InvalidInputError):
    """A path or requestor is empty, degenerate or not valid Unicode."""


class InvalidHexError(InvalidInputError):
    """A value expected to be hex-encoded is not."""


class ChallengeError(InvalidInputError):
    """A portal login challenge or its response is malformed."""


class PermissionDeniedError(SkykeyError):
    """The requestor lacks the permission needed for an operation."""

    def __init__(self, requestor: str, path: str, category, perm_type):
        self.requestor = requestor
        self.path = path
        self.category = category
        self.perm_type = perm_type
        super().__init__(
            f"Permission denied: '{requestor}' lacks {perm_type.name} "
            f"{category.name} permission on '{path}'"
        )


class DataKeyMismatchError(SkykeyError):
    """The entry's data key does not belong to the path it is signed for."""


class ConcurrentWriteInProgressError(SkykeyError):
    """Another write to the same (identity, data key) is in flight."""


class RevisionOverflowError(SkykeyError):
    """The entry already has the maximum allowed revision."""


class RemoteFailureError(SkykeyError):
    """A remote registry or portal call failed."""


class SeedNotFoundError(SkykeyError):
    """No user seed is stored, the user is not logged in."""
