"""
CARET Legal Login Handler
=========================
Concrete ``BaseLoginHandler`` for the CARET Legal ``Login.aspx`` form.

Flow:
    1. Navigate to the login page and let the network settle
    2. Type the email and password (typed, not filled: the form's key
       handlers enable the submit button)
    3. Submit
    4. Dismiss the NPS survey / Pendo guide if they pop up
    5. Fail fast on "Invalid Username or Password"
    6. Wait for the brand logo or user picture in the page header
"""

from __future__ import annotations

import logging

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..errors import AuthenticationError
from .base_auth import BaseLoginHandler, Credentials

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

_USERNAME_SELECTOR = "#txtUserName"
_PASSWORD_SELECTOR = "#txtPwd"
_SUBMIT_SELECTOR = "#loginBtn"

_INVALID_CREDENTIALS_TEXT = "Invalid Username or Password"

# Either one proves the shell rendered for a logged-in user.
_SUCCESS_SELECTOR = (
    '#pageheader-brand-reg[alt="CARET Legal"], [href="#"] #imgUserPic'
)

_SURVEY_TEXT = "How likely are you to"
_PENDO_CONTAINER = "#pendo-guide-container"
_PENDO_CLOSE = '[aria-label="Close"]'

BEARER_COOKIE = "web-tok"


class CaretLoginHandler(BaseLoginHandler):
    """Drives the CARET Legal login page."""

    def __init__(
        self,
        login_url: str,
        *,
        navigation_timeout_ms: int = 30_000,
        success_timeout_ms: int = 10_000,
        popup_timeout_ms: int = 3_000,
    ):
        self.login_url = login_url
        self.navigation_timeout_ms = navigation_timeout_ms
        self.success_timeout_ms = success_timeout_ms
        self.popup_timeout_ms = popup_timeout_ms

    @property
    def portal_name(self) -> str:
        return "CARET Legal"

    @property
    def bearer_cookie_name(self) -> str:
        return BEARER_COOKIE

    async def login(self, page: Page, creds: Credentials) -> None:
        logger.info(f"[AUTH] Navigating to login page: {self.login_url[:80]}")
        await page.goto(self.login_url, timeout=self.navigation_timeout_ms)
        try:
            await page.wait_for_load_state(
                "networkidle", timeout=self.navigation_timeout_ms
            )
        except PlaywrightTimeout:
            # Long-polling widgets keep the network busy on some tenants
            logger.debug("[AUTH] networkidle not reached — continuing")

        await page.locator(_USERNAME_SELECTOR).click()
        await page.keyboard.type(creds.username)
        await page.locator(_PASSWORD_SELECTOR).click()
        await page.keyboard.type(creds.password)
        await page.locator(_SUBMIT_SELECTOR).click()
        await page.wait_for_load_state("load")

        await self.post_login_setup(page)

        if await page.get_by_text(_INVALID_CREDENTIALS_TEXT).is_visible():
            raise AuthenticationError(
                f"Invalid Username or Password for {creds.username}",
                identity=creds.username,
            )

        try:
            await page.wait_for_selector(
                _SUCCESS_SELECTOR, timeout=self.success_timeout_ms
            )
        except PlaywrightTimeout as exc:
            raise AuthenticationError(
                f"Login for {creds.username} did not reach the application "
                f"shell within {self.success_timeout_ms} ms",
                identity=creds.username,
            ) from exc

        logger.info(f"[AUTH] Login successful for {creds.username}")

    async def post_login_setup(self, page: Page) -> None:
        """Close the satisfaction survey and the Pendo guide when present."""
        try:
            await page.get_by_text(_SURVEY_TEXT).wait_for(
                timeout=self.popup_timeout_ms
            )
            await page.get_by_role("button", name="close").click()
            logger.debug("[AUTH] Survey popup dismissed")
        except PlaywrightTimeout:
            logger.debug("[AUTH] Survey popup did not appear")

        pendo = page.locator(_PENDO_CONTAINER)
        if await pendo.is_visible():
            await page.locator(_PENDO_CLOSE).first.click()
            logger.debug("[AUTH] Pendo guide dismissed")
