"""
Tests for the auth building blocks that do not need a browser:
Session, Credentials, cookie helpers and Authenticator's cookie-to-session
step.
"""

from unittest import mock

import pytest

from caretqa.auth import (
    Authenticator,
    CaretLoginHandler,
    Credentials,
    Session,
    build_cookie_header,
    find_cookie,
    resolve_credentials,
)
from caretqa.errors import AuthenticationError
from caretqa.run_config import RunConfig

from conftest import BASE_URL, T0, make_session

COOKIES = [
    {"name": "ASP.NET_SessionId", "value": "abc", "domain": "qa.example.test"},
    {"name": "web-tok", "value": "eyJ.token", "domain": "qa.example.test"},
    {"name": "pendo_visitor", "value": "v1", "domain": "qa.example.test"},
]


class TestSession:

    def test_age_and_freshness(self):
        s = make_session(created_at=T0)
        assert s.age(T0 + 120) == 120
        assert s.is_fresh(45 * 60, T0 + 44 * 60)
        assert not s.is_fresh(45 * 60, T0 + 45 * 60)

    def test_dict_round_trip(self):
        s = make_session()
        assert Session.from_dict(s.to_dict()) == s

    def test_from_dict_defaults(self):
        s = Session.from_dict({"identity": "a@firm.test", "created_at": "12.5"})
        assert s.created_at == 12.5
        assert s.expires_in == 3600.0
        assert s.bearer_token == ""
        assert not s.has_credentials

    def test_repr_hides_token(self):
        s = make_session(token="super-secret-token")
        assert "super-secret-token" not in repr(s)

    def test_is_immutable(self):
        s = make_session()
        with pytest.raises(AttributeError):
            s.bearer_token = "other"


class TestCredentials:

    def test_repr_masks_password(self):
        assert "hunter2" not in repr(Credentials("a@firm.test", "hunter2"))

    def test_resolve_from_defaults(self):
        creds = resolve_credentials(default_user="a@firm.test", default_password="pw")
        assert creds.is_complete
        assert creds.username == "a@firm.test"

    def test_explicit_values_win(self):
        creds = resolve_credentials(
            Credentials("me@firm.test", "mine"),
            default_user="a@firm.test",
            default_password="pw",
        )
        assert (creds.username, creds.password) == ("me@firm.test", "mine")

    def test_incomplete_without_prompt(self):
        assert not resolve_credentials(default_user="a@firm.test").is_complete


class TestCookieHelpers:

    def test_cookie_header(self):
        assert build_cookie_header(COOKIES) == (
            "ASP.NET_SessionId=abc; web-tok=eyJ.token; pendo_visitor=v1"
        )

    def test_empty_cookie_header(self):
        assert build_cookie_header([]) == ""

    def test_find_cookie(self):
        assert find_cookie(COOKIES, "web-tok") == "eyJ.token"
        assert find_cookie(COOKIES, "missing") is None


class TestAuthenticatorSessionBuild:

    @pytest.fixture
    def authenticator(self):
        return Authenticator(RunConfig(default_url=BASE_URL + "/Login.aspx"))

    def test_session_from_cookies(self, authenticator):
        session = authenticator._session_from_cookies("a@firm.test", COOKIES)
        assert session.bearer_token == "eyJ.token"
        assert session.cookie_header.startswith("ASP.NET_SessionId=abc")
        assert session.base_url == BASE_URL
        assert session.expires_in == 3600
        assert session.has_credentials

    def test_missing_token_cookie_fails(self, authenticator):
        with pytest.raises(AuthenticationError) as exc_info:
            authenticator._session_from_cookies("a@firm.test", COOKIES[:1])
        assert "web-tok" in str(exc_info.value)
        assert exc_info.value.identity == "a@firm.test"

    @pytest.mark.asyncio
    async def test_incomplete_credentials_rejected_before_browser(self, authenticator):
        with pytest.raises(AuthenticationError):
            await authenticator.authenticate("a@firm.test", "")

    def test_default_handler_targets_login_page(self, authenticator):
        assert isinstance(authenticator.handler, CaretLoginHandler)
        assert authenticator.handler.login_url == BASE_URL + "/Login.aspx"
        assert authenticator.handler.bearer_cookie_name == "web-tok"

    def test_ci_scales_login_timeouts(self):
        config = RunConfig(is_ci=True)
        handler = Authenticator(config).handler
        assert handler.navigation_timeout_ms == 60_000
        assert handler.success_timeout_ms == 20_000


class TestAuthenticatorTeardown:
    """Browser teardown failures never mask the login outcome."""

    @pytest.fixture
    def playwright(self, monkeypatch):
        context = mock.AsyncMock()
        context.new_page = mock.AsyncMock(return_value=mock.Mock())
        browser = mock.AsyncMock()
        browser.new_context = mock.AsyncMock(return_value=context)
        pw = mock.Mock()
        pw.chromium.launch = mock.AsyncMock(return_value=browser)
        pw.stop = mock.AsyncMock(side_effect=RuntimeError("driver gone"))
        starter = mock.Mock()
        starter.start = mock.AsyncMock(return_value=pw)
        monkeypatch.setattr("caretqa.auth.authenticator.async_playwright", lambda: starter)
        return pw, browser, context

    @pytest.mark.asyncio
    async def test_stop_failure_keeps_login_error(self, playwright):
        pw, browser, context = playwright
        handler = mock.Mock()
        handler.login = mock.AsyncMock(
            side_effect=AuthenticationError("Invalid Username or Password", "a@firm.test")
        )
        authenticator = Authenticator(RunConfig(default_url=BASE_URL + "/Login.aspx"), handler)

        with pytest.raises(AuthenticationError, match="Invalid Username"):
            await authenticator.authenticate("a@firm.test", "pw")
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_failure_after_success_still_returns_session(self, playwright):
        _, _, context = playwright
        context.cookies = mock.AsyncMock(return_value=COOKIES)
        handler = mock.Mock()
        handler.login = mock.AsyncMock()
        handler.bearer_cookie_name = "web-tok"
        authenticator = Authenticator(RunConfig(default_url=BASE_URL + "/Login.aspx"), handler)

        session = await authenticator.authenticate("a@firm.test", "pw")
        assert session.bearer_token == "eyJ.token"
