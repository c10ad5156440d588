"""
User Data
The user's own settings and portal accounts, kept as hidden files under
the MySky domain.

Only this process reads and writes these files, so they skip permission
checks and go straight to skydb.
"""

import logging
from dataclasses import asdict, dataclass

from skykey.registry import RegistryClient
from skykey.revision import RevisionNumberCache
from skykey.skydb import get_json_encrypted, set_json_encrypted

logger = logging.getLogger(__name__)


@dataclass
class UserSettings:
    """
    Attributes:
        preferred_portal: Portal to send apps to, if the user picked one.
        active_portal_accounts: Per portal, {"activeAccountNickname": ...}.
    """
    preferred_portal: str | None = None
    active_portal_accounts: dict[str, dict] | None = None

    def to_json(self) -> dict:
        return {
            "preferredPortal": self.preferred_portal,
            "activePortalAccounts": self.active_portal_accounts,
        }

    @classmethod
    def from_json(cls, data: dict | None) -> "UserSettings":
        data = data or {}
        return cls(
            preferred_portal=data.get("preferredPortal") or None,
            active_portal_accounts=data.get("activePortalAccounts") or None,
        )


@dataclass
class PortalAccount:
    """One nickname's account on a portal. tweak locates its login key."""
    tweak: str


def get_user_settings_path(mysky_domain: str) -> str:
    return f"{mysky_domain}/settings.json"


def get_portal_accounts_path(mysky_domain: str) -> str:
    return f"{mysky_domain}/portal-accounts.json"


async def get_user_settings(
    registry: RegistryClient,
    seed: bytes,
    mysky_domain: str,
    revisions: RevisionNumberCache | None = None,
) -> UserSettings:
    """Read the user settings. Missing settings come back as all None."""
    logger.debug("Entered get_user_settings")
    response = await get_json_encrypted(registry, seed, get_user_settings_path(mysky_domain), revisions)
    return UserSettings.from_json(response.data)


async def set_user_settings(
    registry: RegistryClient,
    revisions: RevisionNumberCache,
    seed: bytes,
    mysky_domain: str,
    settings: UserSettings,
) -> None:
    """Replace the user settings."""
    logger.debug("Entered set_user_settings")
    await set_json_encrypted(registry, revisions, seed, get_user_settings_path(mysky_domain), settings.to_json())


async def get_portal_accounts(
    registry: RegistryClient,
    seed: bytes,
    mysky_domain: str,
    revisions: RevisionNumberCache | None = None,
) -> dict[str, dict[str, PortalAccount]]:
    """
    Read the portal accounts.

    Returns:
        portal -> nickname -> account. Empty if none are stored.
    """
    logger.debug("Entered get_portal_accounts")
    response = await get_json_encrypted(registry, seed, get_portal_accounts_path(mysky_domain), revisions)
    return {
        portal: {nickname: PortalAccount(**account) for nickname, account in accounts.items()}
        for portal, accounts in (response.data or {}).items()
    }


async def set_portal_accounts(
    registry: RegistryClient,
    revisions: RevisionNumberCache,
    seed: bytes,
    mysky_domain: str,
    portal_accounts: dict[str, dict[str, PortalAccount]],
) -> None:
    """Replace the portal accounts."""
    logger.debug("Entered set_portal_accounts")
    data = {
        portal: {nickname: asdict(account) for nickname, account in accounts.items()}
        for portal, accounts in portal_accounts.items()
    }
    await set_json_encrypted(registry, revisions, seed, get_portal_accounts_path(mysky_domain), data)
