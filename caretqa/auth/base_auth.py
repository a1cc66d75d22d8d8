"""
Base Login Handler (Abstract)
=============================
Defines the contract that the UI login handler implements.

The ``Authenticator`` owns the browser lifecycle and cookie harvesting;
a handler only knows how to drive one login form to completion on a page
it is given.  Keeping the two apart lets tests swap the handler without
touching browser management, and lets another tenant (e.g. the client
portal) plug in its own form.

Design principles:
    - Handlers never launch or close browsers
    - Handlers raise ``AuthenticationError``; they do not return flags
    - Credentials are never logged
"""

from __future__ import annotations

import getpass
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Page

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Credentials container
# ---------------------------------------------------------------------------

@dataclass
class Credentials:
    """Plain credential container — resolved once, used by handlers."""
    username: str = ""
    password: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.username and self.password)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


def resolve_credentials(
    creds: Optional[Credentials] = None,
    *,
    default_user: str = "",
    default_password: str = "",
    interactive: bool = False,
) -> Credentials:
    """Fill missing credential fields.

    Resolution order:
        1. Values already on *creds*
        2. Configured defaults (``DEFAULT_USER`` / ``DEFAULT_LEGAL_PASSWORD``)
        3. Terminal prompt (only if *interactive*)
    """
    creds = creds or Credentials()
    if creds.is_complete:
        return creds

    if not creds.username:
        creds.username = default_user
    if not creds.password:
        creds.password = default_password

    if not creds.is_complete and interactive:
        if not creds.username:
            creds.username = input("  CARET Legal email: ").strip()
        if not creds.password:
            creds.password = getpass.getpass(f"  Password for {creds.username}: ")

    return creds


# ---------------------------------------------------------------------------
# Abstract Base Handler
# ---------------------------------------------------------------------------

class BaseLoginHandler(ABC):
    """Abstract base for UI login handlers.

    Subclasses MUST implement:
        - ``portal_name``          — human readable name for logs
        - ``bearer_cookie_name``   — cookie that carries the API token
        - ``login(page, creds)``   — drive the form, raise on failure
    """

    @property
    @abstractmethod
    def portal_name(self) -> str:
        ...

    @property
    @abstractmethod
    def bearer_cookie_name(self) -> str:
        """Name of the cookie whose value is sent as ``Authorization: Bearer``."""
        ...

    @abstractmethod
    async def login(self, page: Page, creds: Credentials) -> None:
        """Perform the complete login flow on *page*.

        The page belongs to a fresh browser context.  The handler should
        navigate, fill, submit and wait for the post-login indicator.

        Raises:
            AuthenticationError: the form rejected the credentials, or the
                success indicator never appeared.
        """
        ...

    async def post_login_setup(self, page: Page) -> None:
        """Hook called after a successful login, before cookies are harvested.

        Override to dismiss surveys, tours or announcement modals.
        """
        pass
