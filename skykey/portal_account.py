"""
Portal Accounts
Register and log in to a portal by signing its challenge with a per-email key.

The login keypair is derived from the seed salted with the email, so each
email gets its own key and the portal never sees the identity key.

Flow:
  1. Ask the portal for a challenge for our login public key.
  2. Sign challenge || type || recipient with the login private key.
  3. Submit the signed response. The portal answers with a JWT.
  4. Check the JWT is for the email we asked for.

The type and recipient are part of the signed data, so a response for one
portal (or for login instead of register) is useless anywhere else.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlsplit

import jwt

from skykey.crypto import KeyPair, derive_salted_keypair, sign_with_private_key
from skykey.errors import ChallengeError, InvalidHexError, RemoteFailureError
from skykey.util import from_hex, to_hex

logger = logging.getLogger(__name__)

CHALLENGE_SIZE = 32
CHALLENGE_TYPE_LOGIN = "skynet-portal-login"
CHALLENGE_TYPE_REGISTER = "skynet-portal-register"
CHALLENGE_TYPES = (CHALLENGE_TYPE_LOGIN, CHALLENGE_TYPE_REGISTER)


@dataclass(frozen=True)
class ChallengeResponse:
    """
    A signed challenge, ready to submit.

    Attributes:
        response: Hex of the signed data (challenge || type || recipient).
        signature: Hex of the Ed25519 signature over response.
    """
    response: str
    signature: str


@dataclass(frozen=True)
class JWTClaims:
    """The parts of a portal JWT we read. Any of them may be missing."""
    email: str | None = None
    subject: str | None = None
    expires_at: int | None = None


class PortalConnector(ABC):
    """Transport to a portal's account service."""

    @abstractmethod
    async def portal_url(self) -> str:
        """The full URL of the portal, e.g. "https://dev1.siasky.dev"."""

    @abstractmethod
    async def request_challenge(self, public_key: str, challenge_type: str) -> str:
        """
        Ask for a challenge.

        Returns:
            The hex-encoded challenge.
        """

    @abstractmethod
    async def submit_challenge(self, challenge_type: str, response: ChallengeResponse, email: str | None) -> str:
        """
        Submit a signed challenge. email is sent only for registration.

        Returns:
            The session JWT.
        """


def gen_portal_login_keypair(seed: bytes, email: str) -> KeyPair:
    """Derive the login keypair for an email."""
    return derive_salted_keypair(seed, email)


def get_portal_recipient(portal_url: str) -> str:
    """
    Shorten a portal URL to the recipient that gets signed.

    Keeps the scheme and the last two labels of the hostname:
    "https://dev1.siasky.dev" becomes "https://siasky.dev".
    """
    parts = urlsplit(portal_url)
    if not parts.scheme or not parts.hostname:
        raise ChallengeError(f"Invalid portal URL: '{portal_url}'")

    recipient = f"{parts.scheme}://" + ".".join(parts.hostname.split(".")[-2:])
    if parts.port is not None:
        recipient += f":{parts.port}"
    return recipient


def sign_challenge(private_key: str, challenge: str, challenge_type: str, portal_recipient: str) -> ChallengeResponse:
    """
    Sign a portal challenge.

    Args:
        private_key: Hex private key of the login keypair.
        challenge: Hex challenge from the portal, 32 bytes.
        challenge_type: CHALLENGE_TYPE_LOGIN or CHALLENGE_TYPE_REGISTER.
        portal_recipient: From get_portal_recipient.

    Raises:
        ChallengeError: If the challenge or type is invalid.
    """
    if challenge_type not in CHALLENGE_TYPES:
        raise ChallengeError(f"Unknown challenge type '{challenge_type}'")
    try:
        challenge_bytes = from_hex(challenge, "challenge")
    except InvalidHexError as e:
        raise ChallengeError(f"Challenge from server is not hex: {challenge!r}") from e
    if len(challenge_bytes) != CHALLENGE_SIZE:
        raise ChallengeError(
            f"Expected challenge of length {CHALLENGE_SIZE}, was {len(challenge_bytes)}"
        )

    data = challenge_bytes + challenge_type.encode("utf-8") + portal_recipient.encode("utf-8")
    signature = sign_with_private_key(private_key, data)
    return ChallengeResponse(response=to_hex(data), signature=to_hex(signature))


def decode_jwt_claims(token: str) -> JWTClaims:
    """
    Read the claims of a portal JWT.

    The signature is not checked: the token came straight from the portal
    over the connection we opened, and only the portal can verify it.

    Raises:
        RemoteFailureError: If the token cannot be decoded.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise RemoteFailureError(f"Portal returned an invalid JWT: {e}") from e

    session = claims.get("session")
    identity = session.get("identity") if isinstance(session, dict) else None
    traits = identity.get("traits") if isinstance(identity, dict) else None
    email = traits.get("email") if isinstance(traits, dict) else None

    return JWTClaims(
        email=email if isinstance(email, str) else None,
        subject=claims.get("sub"),
        expires_at=claims.get("exp"),
    )


def get_email_from_jwt(token: str) -> str | None:
    """Return the email in a portal JWT, or None if it has none."""
    return decode_jwt_claims(token).email


async def _authenticate(connector: PortalConnector, seed: bytes, email: str, challenge_type: str) -> str:
    keypair = gen_portal_login_keypair(seed, email)

    challenge = await connector.request_challenge(keypair.public_key, challenge_type)
    recipient = get_portal_recipient(await connector.portal_url())
    response = sign_challenge(keypair.private_key, challenge, challenge_type, recipient)

    token = await connector.submit_challenge(
        challenge_type, response, email if challenge_type == CHALLENGE_TYPE_REGISTER else None
    )

    decoded_email = get_email_from_jwt(token)
    if decoded_email != email:
        raise RemoteFailureError(
            f"Email not found in JWT or did not match provided email. "
            f"Expected: '{email}', received: '{decoded_email}'"
        )
    return token


async def register(connector: PortalConnector, seed: bytes, email: str) -> str:
    """
    Register a new portal account for an email.

    Returns:
        The session JWT.

    Raises:
        ChallengeError: If the portal sent a malformed challenge.
        RemoteFailureError: If the portal call fails or the JWT is not for email.
    """
    logger.debug("Entered register")
    return await _authenticate(connector, seed, email, CHALLENGE_TYPE_REGISTER)


async def login(connector: PortalConnector, seed: bytes, email: str) -> str:
    """
    Log in to an existing portal account.

    Returns:
        The session JWT.
    """
    logger.debug("Entered login")
    return await _authenticate(connector, seed, email, CHALLENGE_TYPE_LOGIN)
