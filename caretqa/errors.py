"""
Error Types
===========
Exception hierarchy shared by the auth, API and mailbox layers.

    CaretQAError
    ├── AuthenticationError   login rejected or session artifact missing
    ├── ApiError              non-2xx API response (raised by callers)
    ├── MailboxConfigError    Nylas key / grant mapping problems
    ├── MailboxTimeout        expected email never arrived
    └── MessageNotFoundError  no message matched a subject search

``TransportError`` is Playwright's own error type.  Network failures
(DNS, refused connection, timeout) reach callers unmodified, so catching
``TransportError`` is the way to handle them.
"""

from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Error as TransportError

__all__ = [
    "CaretQAError",
    "AuthenticationError",
    "ApiError",
    "MailboxConfigError",
    "MailboxTimeout",
    "MessageNotFoundError",
    "TransportError",
]


class CaretQAError(Exception):
    """Base class for every error raised by this package."""


class AuthenticationError(CaretQAError):
    """UI login failed for ``identity``."""

    def __init__(self, message: str, identity: str = ""):
        super().__init__(message)
        self.identity = identity


class ApiError(CaretQAError):
    """An API call returned a status outside [200, 300)."""

    def __init__(
        self,
        method: str,
        url: str,
        status: int,
        status_text: str = "",
        body: Any = None,
        action: Optional[str] = None,
    ):
        self.method = method
        self.url = url
        self.status = status
        self.status_text = status_text
        self.body = body
        self.action = action
        prefix = f"Failed to {action}" if action else f"{method} {url} failed"
        super().__init__(f"{prefix}: {status} {status_text}".rstrip())


class MailboxConfigError(CaretQAError):
    """Mailbox access is not configured (API key or grant mapping)."""


class MailboxTimeout(CaretQAError):
    """No message matched within the polling window."""


class MessageNotFoundError(CaretQAError):
    """A subject search returned no messages."""
