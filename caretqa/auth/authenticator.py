"""
Authenticator
=============
Produces one fresh ``Session`` by logging in through the real UI.

Responsibilities:
    1. Launch a headless Chromium and an isolated context
    2. Hand the page to a ``BaseLoginHandler`` for the form interaction
    3. Harvest every cookie in the context
    4. Pull the bearer token out of its carrier cookie
    5. Tear the browser down on every exit path

This is expensive (several seconds per call) and is the reason
``SessionCache`` exists.  There is no retry here: every failure is
terminal for the call and surfaces as ``AuthenticationError``.

Usage::

    authenticator = Authenticator(RunConfig.from_env())
    session = await authenticator.authenticate("user@firm.test", "secret")
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from playwright.async_api import async_playwright

from ..errors import AuthenticationError
from ..run_config import RunConfig
from .base_auth import BaseLoginHandler, Credentials
from .caret_auth import CaretLoginHandler
from .session import Session

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------

def build_cookie_header(cookies: Iterable[Dict[str, Any]]) -> str:
    """Serialise cookie records as ``name=value; name=value``."""
    return "; ".join(f"{c['name']}={c['value']}" for c in cookies)


def find_cookie(cookies: Iterable[Dict[str, Any]], name: str) -> Optional[str]:
    """Value of the first cookie called *name*, or None."""
    for cookie in cookies:
        if cookie.get("name") == name:
            return cookie.get("value")
    return None


# ---------------------------------------------------------------------------
# Authenticator
# ---------------------------------------------------------------------------

class Authenticator:
    """Logs in through the browser and returns a ``Session``.

    Args:
        config:  Run configuration (URLs, timeouts, headless flag).
        handler: Login form driver.  Defaults to ``CaretLoginHandler``.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        handler: Optional[BaseLoginHandler] = None,
    ):
        self.config = config or RunConfig.from_env()
        self.handler = handler or CaretLoginHandler(
            self.config.login_url,
            navigation_timeout_ms=self.config.scaled_ms(self.config.login_timeout_ms),
            success_timeout_ms=self.config.scaled_ms(
                self.config.login_success_timeout_ms
            ),
        )

    async def authenticate(self, identity: str, secret: str) -> Session:
        """Run one UI login for *identity*.

        Raises:
            AuthenticationError: credentials rejected, success indicator
                missing, or no bearer cookie after login.
        """
        creds = Credentials(username=identity, password=secret)
        if not creds.is_complete:
            raise AuthenticationError(
                "Both identity and secret are required to log in",
                identity=identity,
            )

        logger.info(
            f"[AUTH] Authenticating {identity} against {self.config.base_url}"
        )
        started = time.monotonic()

        pw = await async_playwright().start()
        browser = None
        context = None
        try:
            browser = await pw.chromium.launch(
                headless=self.config.headless,
                slow_mo=self.config.slow_mo_ms,
            )
            context = await browser.new_context(ignore_https_errors=True)
            page = await context.new_page()

            await self.handler.login(page, creds)
            cookies: List[Dict[str, Any]] = await context.cookies()
        finally:
            if context:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"[AUTH] Failed to close context: {e}")
            if browser:
                try:
                    await browser.close()
                except Exception as e:
                    logger.warning(f"[AUTH] Failed to close browser: {e}")
            try:
                await pw.stop()
            except Exception as e:
                logger.warning(f"[AUTH] Failed to stop Playwright: {e}")

        session = self._session_from_cookies(identity, cookies)
        logger.info(
            f"[AUTH] Session ready for {identity}: {len(cookies)} cookies, "
            f"token length {len(session.bearer_token)}, "
            f"{time.monotonic() - started:.1f}s"
        )
        return session

    def _session_from_cookies(
        self, identity: str, cookies: List[Dict[str, Any]]
    ) -> Session:
        token_name = self.handler.bearer_cookie_name
        token = find_cookie(cookies, token_name)
        if not token:
            raise AuthenticationError(
                f"Login for {identity} looked successful but the "
                f"'{token_name}' cookie is missing",
                identity=identity,
            )
        return Session(
            identity=identity,
            bearer_token=token,
            cookie_header=build_cookie_header(cookies),
            base_url=self.config.base_url,
            created_at=time.time(),
            expires_in=self.config.session_expires_in_s,
            cookies=cookies,
        )
