"""
Key Derivation
Ed25519 identity keys and message signatures derived from the user seed.

Every derivation hashes its salt and its input separately before hashing
the pair:

  derive(data, salt) = SHA-512( SHA-512(salt) || SHA-512(data) )

so a salt and an input of different lengths can never be shifted into
each other. The first 32 bytes of the result seed an Ed25519 keypair.

Identical (seed, salt) always yields the same keypair. Different salts
yield keypairs that cannot be linked without knowing the seed.
"""

import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from skykey.errors import InvalidHexError, InvalidInputError
from skykey.util import from_hex, to_hex

# Descriptive salts. Changing any of these changes every derived key.
SALT_ROOT_DISCOVERABLE_KEY = "root discoverable key"
SALT_MESSAGE_SIGNING = "MYSKY_ID_VERIFICATION"

KEY_SEED_SIZE = 32       # Ed25519 private seed
PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = 64    # seed || public key
SIGNATURE_SIZE = 64


@dataclass(frozen=True)
class KeyPair:
    """Hex-encoded Ed25519 keypair. private_key is the 32-byte seed followed by the public key."""
    public_key: str
    private_key: str


def sha512(message: bytes | str) -> bytes:
    """Hash bytes, or a string as UTF-8, with SHA-512."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hashlib.sha512(message).digest()


def hash_with_salt(message: bytes, salt: str) -> bytes:
    """SHA-512 of the salt hash concatenated with the message hash."""
    return sha512(sha512(salt) + sha512(message))


def gen_keypair_from_hash(hash_bytes: bytes) -> KeyPair:
    """Create an Ed25519 keypair seeded by the first 32 bytes of a hash."""
    if len(hash_bytes) < KEY_SEED_SIZE:
        raise InvalidInputError(f"Expected at least {KEY_SEED_SIZE} bytes of key material")

    key_seed = hash_bytes[:KEY_SEED_SIZE]
    private_key = Ed25519PrivateKey.from_private_bytes(key_seed)
    public_key = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return KeyPair(public_key=to_hex(public_key), private_key=to_hex(key_seed + public_key))


def derive_identity_keypair(seed: bytes) -> KeyPair:
    """Derive the user's root identity keypair. Its public key is the user ID."""
    return gen_keypair_from_hash(hash_with_salt(seed, SALT_ROOT_DISCOVERABLE_KEY))


def derive_salted_keypair(seed: bytes, salt: str) -> KeyPair:
    """
    Derive a keypair for a caller-chosen purpose (an email, a portal login).

    The result cannot be linked to the identity keypair without the seed.
    """
    return gen_keypair_from_hash(hash_with_salt(seed, salt))


def sign_with_private_key(private_key: str, data: bytes) -> bytes:
    """
    Produce a detached Ed25519 signature.

    Args:
        private_key: Hex-encoded 64-byte private key from a KeyPair.
        data: The bytes to sign.

    Returns:
        The 64-byte signature.
    """
    key_bytes = from_hex(private_key, "private_key")
    if len(key_bytes) != PRIVATE_KEY_SIZE:
        raise InvalidInputError(
            f"Expected private key of length {PRIVATE_KEY_SIZE}, was {len(key_bytes)}"
        )
    signer = Ed25519PrivateKey.from_private_bytes(key_bytes[:KEY_SEED_SIZE])
    return signer.sign(data)


def verify_signature(data: bytes, signature: bytes, public_key: str) -> bool:
    """Verify a detached Ed25519 signature. Never raises on malformed input."""
    try:
        key_bytes = from_hex(public_key, "public_key")
        if len(key_bytes) != PUBLIC_KEY_SIZE or len(signature) != SIGNATURE_SIZE:
            return False
        Ed25519PublicKey.from_public_bytes(key_bytes).verify(signature, data)
    except (InvalidHexError, InvalidSignature, ValueError, TypeError):
        return False
    return True


def _message_hash(message: bytes) -> bytes:
    return hash_with_salt(message, SALT_MESSAGE_SIGNING)


def sign_message(seed: bytes, message: bytes) -> bytes:
    """
    Sign an arbitrary message with the identity key.

    The message is salted before signing, so these signatures are never
    valid for registry entries, challenges or any other signed structure.
    """
    keypair = derive_identity_keypair(seed)
    return sign_with_private_key(keypair.private_key, _message_hash(message))


def verify_message(message: bytes, signature: bytes, public_key: str) -> bool:
    """Verify a signature produced by sign_message."""
    if not isinstance(message, bytes | bytearray) or not isinstance(signature, bytes | bytearray):
        return False
    return verify_signature(_message_hash(bytes(message)), bytes(signature), public_key)
