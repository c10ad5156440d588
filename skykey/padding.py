"""
Bucket Padding
Pad encrypted file plaintext to fixed bucket sizes.

The storage network sees only ciphertext lengths. Padding every file to
one of a few sizes keeps those lengths from revealing what a file holds.
"""

import os

from skykey.errors import InvalidInputError

LENGTH_HEADER_SIZE = 4

# Every padded file is exactly one of these sizes
BUCKET_SIZES = [
    4096,       # 4 KB
    16384,      # 16 KB
    65536,      # 64 KB
    262144,     # 256 KB
    1048576,    # 1 MB
    4194304,    # 4 MB
]


def pad_to_bucket(data: bytes) -> bytes:
    """
    Pad data to the smallest bucket that fits it.

    Prepends a 4-byte big-endian length header, then fills the rest of
    the bucket with random bytes.

    Raises:
        InvalidInputError: If the data does not fit in the largest bucket.
    """
    needed = len(data) + LENGTH_HEADER_SIZE
    bucket_size = next((size for size in BUCKET_SIZES if needed <= size), None)
    if bucket_size is None:
        raise InvalidInputError(
            f"Data of {len(data)} bytes exceeds the largest bucket of {BUCKET_SIZES[-1]} bytes"
        )

    padded = len(data).to_bytes(LENGTH_HEADER_SIZE, "big") + data
    return padded + os.urandom(bucket_size - len(padded))


def unpad_from_bucket(padded: bytes) -> bytes:
    """
    Strip bucket padding and return the original data.

    Raises:
        InvalidInputError: If the length header is missing or points past the end.
    """
    if len(padded) < LENGTH_HEADER_SIZE:
        raise InvalidInputError("Padded data is shorter than its length header")
    original_len = int.from_bytes(padded[:LENGTH_HEADER_SIZE], "big")
    if LENGTH_HEADER_SIZE + original_len > len(padded):
        raise InvalidInputError("Padded data length header exceeds the data")
    return padded[LENGTH_HEADER_SIZE:LENGTH_HEADER_SIZE + original_len]
