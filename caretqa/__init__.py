"""
CARET QA Package
Test-automation support for CARET Legal: UI-login session caching, an
authenticated API gateway with resource clients, and Nylas mailbox access.

CLI Usage:
    python -m caretqa <command> [options]

    Commands:
        login        Log users in and persist their sessions
        stats        Show cached session ages
        invalidate   Drop one user's cached session
"""

from .run_config import RunConfig, detect_ci
from .errors import (
    ApiError,
    AuthenticationError,
    CaretQAError,
    MailboxConfigError,
    MailboxTimeout,
    MessageNotFoundError,
    TransportError,
)
from .auth import Authenticator, CaretLoginHandler, Credentials, Session, SessionCache
from .api import ApiGateway, ApiResult
from .mail import Mailbox, NylasClient, get_mailbox_for

__all__ = [
    'RunConfig',
    'detect_ci',
    # Errors
    'CaretQAError',
    'AuthenticationError',
    'ApiError',
    'MailboxConfigError',
    'MailboxTimeout',
    'MessageNotFoundError',
    'TransportError',
    # Auth
    'Authenticator',
    'CaretLoginHandler',
    'Credentials',
    'Session',
    'SessionCache',
    # API
    'ApiGateway',
    'ApiResult',
    # Mail
    'Mailbox',
    'NylasClient',
    'get_mailbox_for',
]

__version__ = '1.0.0'
