"""
Utilities
Hex encoding and path helpers shared by the derivation and permission code.

Paths look like "domain.hns/dir/file.json". The first segment is the
owning domain. Sanitizing trims whitespace, collapses repeated slashes,
drops leading and trailing slashes and lowercases the domain.
"""

import re

from skykey.errors import InvalidHexError, InvalidPathError

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def to_hex(data: bytes) -> str:
    """Hex-encode bytes (lowercase)."""
    return data.hex()


def from_hex(value: str, name: str = "value") -> bytes:
    """
    Decode a hex string into bytes.

    Raises:
        InvalidHexError: If the value is empty, not a string or not hex.
    """
    if not isinstance(value, str) or not _HEX_RE.fullmatch(value) or len(value) % 2:
        raise InvalidHexError(f"Expected '{name}' to be a hex-encoded string, was {value!r}")
    return bytes.fromhex(value)


def trim_suffix(value: str, suffix: str) -> str:
    """Remove every trailing occurrence of the suffix."""
    while suffix and value.endswith(suffix):
        value = value[: -len(suffix)]
    return value


def sanitize_path(path: str) -> str | None:
    """
    Sanitize a path or requestor, returning None if nothing usable is left.

    Also returns None for names that are whitespace-only or contain
    unpaired surrogates (not encodable as UTF-8).
    """
    if not isinstance(path, str):
        return None
    segments = [s for s in path.strip().split("/") if s]
    if not segments:
        return None
    for segment in segments:
        if not segment.strip():
            return None
        try:
            segment.encode("utf-8")
        except UnicodeEncodeError:
            return None
    segments[0] = segments[0].lower()
    return "/".join(segments)


def require_sanitized_path(path: str, name: str = "path") -> str:
    """Like sanitize_path, but raises InvalidPathError instead of returning None."""
    sanitized = sanitize_path(path)
    if sanitized is None:
        raise InvalidPathError(f"Input {name} '{path}' not a valid path")
    return sanitized


def get_path_domain(path: str) -> str | None:
    """Return the owning domain of a path (its first segment)."""
    sanitized = sanitize_path(path)
    if sanitized is None:
        return None
    return sanitized.split("/")[0]


def get_parent_path(path: str) -> str | None:
    """Return the parent of a path, or None if the path is a bare domain."""
    sanitized = sanitize_path(path)
    if sanitized is None:
        return None
    segments = sanitized.split("/")
    if len(segments) <= 1:
        return None
    return "/".join(segments[:-1])
