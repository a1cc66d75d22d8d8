"""
Authentication Module
=====================
UI-login based authentication for API testing without browser overhead.

Architecture:
    - ``BaseLoginHandler``   — abstract form driver
    - ``CaretLoginHandler``  — CARET Legal ``Login.aspx``
    - ``Authenticator``      — owns the browser, harvests token + cookies
    - ``Session``            — what a login produces
    - ``SessionCache``       — per-identity reuse inside a freshness window

Usage::

    from caretqa.auth import Authenticator, SessionCache

    cache = SessionCache.from_config(config, Authenticator(config))
    session = await cache.get_or_create(email, password)
"""

from .base_auth import BaseLoginHandler, Credentials, resolve_credentials
from .caret_auth import CaretLoginHandler
from .authenticator import Authenticator, build_cookie_header, find_cookie
from .session import Session
from .session_cache import CacheStats, SessionCache

__all__ = [
    "BaseLoginHandler",
    "Credentials",
    "resolve_credentials",
    "CaretLoginHandler",
    "Authenticator",
    "build_cookie_header",
    "find_cookie",
    "Session",
    "SessionCache",
    "CacheStats",
]
