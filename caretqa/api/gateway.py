"""
API Request Gateway
===================
Issues one authenticated HTTP call against the application's ``/api2``
surface and returns a uniformly parsed ``ApiResult``.

Headers mimic the browser's own XHR calls:
    - ``accept``            JSON-preferring, like jQuery's default
    - ``x-requested-with``  ``XMLHttpRequest``
    - ``svc-type``          ``web``
    - ``authorization``     ``Bearer <web-tok>`` when the session has one
    - ``cookie``            every cookie from the login context
    - ``content-type``      chosen by ``content_type`` (``form`` | ``json``)

Each call runs in its own Playwright ``APIRequestContext``, which is
disposed once the body has been read, on every exit path.

Status handling:
    The gateway never raises on a non-2xx status.  Callers check
    ``result.ok`` or call ``result.raise_for_status()``.  Transport errors
    (DNS, refused connection, timeout) propagate unchanged as Playwright
    errors.

Usage::

    async with ApiGateway() as api:
        result = await api.post("/api2/Matter/", session, payload)
        matter_id = result.raise_for_status("create matter").body
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from playwright.async_api import APIResponse, Playwright, async_playwright

from ..auth.session import Session
from ..errors import ApiError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ACCEPT = "application/json, text/javascript, */*; q=0.01"

CONTENT_TYPES = {
    "form": "application/x-www-form-urlencoded; charset=UTF-8",
    "json": "application/json",
}

DEFAULT_TIMEOUT_MS = 30_000


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

def is_success(status: int) -> bool:
    """True for any status in [200, 300)."""
    return 200 <= status < 300


@dataclass
class ApiResult:
    """One response, body already read and parsed."""

    method: str
    url: str
    status: int
    status_text: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return is_success(self.status)

    def raise_for_status(self, action: Optional[str] = None) -> "ApiResult":
        """Raise ``ApiError`` unless the status is 2xx; returns self for chaining."""
        if not self.ok:
            logger.error(
                f"[API] {self.method} {self.url} → {self.status} "
                f"{self.status_text}: {_preview(self.body)}"
            )
            raise ApiError(
                self.method,
                self.url,
                self.status,
                self.status_text,
                body=self.body,
                action=action,
            )
        return self


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def build_full_url(path: str, base_url: str) -> str:
    """Resolve *path* against *base_url* with exactly one separating slash.

    Paths that already carry an ``http://`` or ``https://`` scheme are
    returned verbatim.
    """
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def standard_headers(session: Session, content_type: Optional[str] = None) -> Dict[str, str]:
    """Headers every API call carries, derived from *session*."""
    headers = {
        "accept": ACCEPT,
        "x-requested-with": "XMLHttpRequest",
        "svc-type": "web",
        "cookie": session.cookie_header,
    }
    if session.bearer_token:
        headers["authorization"] = f"Bearer {session.bearer_token}"
    if content_type is not None:
        try:
            headers["content-type"] = CONTENT_TYPES[content_type]
        except KeyError:
            raise ValueError(
                f"content_type must be one of {sorted(CONTENT_TYPES)}, got {content_type!r}"
            ) from None
    return headers


def merge_headers(base: Mapping[str, str], extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Overlay *extra* on *base*, matching header names case-insensitively."""
    merged = dict(base)
    for name, value in (extra or {}).items():
        for existing in [k for k in merged if k.lower() == name.lower()]:
            del merged[existing]
        merged[name] = value
    return merged


def parse_body_text(text: str, content_type: str = "") -> Any:
    """Decode a response body: JSON when it parses, the raw text otherwise.

    A declared JSON content type that fails to parse is logged as a
    warning.  Any other content type still gets a best-effort parse.
    """
    if "application/json" in (content_type or "").lower():
        try:
            return json.loads(text)
        except ValueError as exc:
            logger.warning(f"[API] Failed to parse JSON response: {exc}")
            return text

    try:
        return json.loads(text)
    except ValueError:
        return text


async def parse_response_body(response: APIResponse) -> Any:
    """Read *response* once and decode it with ``parse_body_text``."""
    text = await response.text()
    return parse_body_text(text, response.headers.get("content-type", ""))


def _preview(body: Any, limit: int = 200) -> str:
    text = body if isinstance(body, str) else json.dumps(body, default=str)
    return text if len(text) <= limit else text[:limit] + "…"


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ApiGateway:
    """Authenticated HTTP verbs over Playwright's API request contexts.

    Use as an async context manager, or call ``start()`` / ``stop()``.

    Args:
        timeout_ms:          Default per-call timeout.
        ignore_https_errors: Accept self-signed certificates (test tenants).
        playwright:          An already running Playwright to borrow.  It is
                             not stopped by ``stop()``.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        ignore_https_errors: bool = True,
        playwright: Optional[Playwright] = None,
    ):
        self.timeout_ms = timeout_ms
        self.ignore_https_errors = ignore_https_errors
        self._playwright = playwright
        self._manager = None

    @classmethod
    def from_config(cls, config, **kwargs) -> "ApiGateway":
        return cls(timeout_ms=config.scaled_ms(config.api_timeout_ms), **kwargs)

    async def start(self) -> "ApiGateway":
        if self._playwright is None:
            self._manager = async_playwright()
            self._playwright = await self._manager.start()
        return self

    async def stop(self) -> None:
        if self._manager is not None:
            await self._playwright.stop()
            self._manager = None
            self._playwright = None

    async def __aenter__(self) -> "ApiGateway":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ── Verbs ─────────────────────────────────────────────────────

    async def get(
        self,
        path: str,
        session: Session,
        *,
        params: Optional[Mapping[str, Any]] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult:
        return await self.request(
            "GET", path, session,
            params=params, extra_headers=extra_headers, timeout=timeout,
        )

    async def post(
        self,
        path: str,
        session: Session,
        payload: Any = None,
        *,
        content_type: str = "form",
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult:
        return await self.request(
            "POST", path, session, payload,
            content_type=content_type, extra_headers=extra_headers, timeout=timeout,
        )

    async def put(
        self,
        path: str,
        session: Session,
        payload: Any = None,
        *,
        content_type: str = "form",
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult:
        return await self.request(
            "PUT", path, session, payload,
            content_type=content_type, extra_headers=extra_headers, timeout=timeout,
        )

    async def delete(
        self,
        path: str,
        session: Session,
        *,
        data: Any = None,
        content_type: Optional[str] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult:
        """DELETE, optionally with a body.

        Some endpoints (``/api2/DeleteMatter``) take the resource id in a
        JSON body; pass it as *data*.  A body without an explicit
        *content_type* is sent as JSON.
        """
        if data is not None and content_type is None:
            content_type = "json"
        return await self.request(
            "DELETE", path, session, data,
            content_type=content_type, extra_headers=extra_headers, timeout=timeout,
        )

    # ── Core ──────────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        path: str,
        session: Session,
        payload: Any = None,
        *,
        content_type: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult:
        """Perform one call and return its parsed result."""
        if self._playwright is None:
            raise RuntimeError("ApiGateway is not started; use 'async with ApiGateway()'")

        url = build_full_url(path, session.base_url)
        headers = merge_headers(standard_headers(session, content_type), extra_headers)
        options: Dict[str, Any] = {
            "method": method,
            "headers": headers,
            "timeout": timeout if timeout is not None else self.timeout_ms,
        }
        if params:
            options["params"] = {k: str(v) for k, v in params.items()}
        if payload is not None:
            if content_type == "form":
                options["form"] = payload
            elif isinstance(payload, (str, bytes)):
                options["data"] = payload
            else:
                # Serialised here so scalars (e.g. ``true``) are sent as JSON too
                options["data"] = json.dumps(payload)

        context = await self._playwright.request.new_context(
            ignore_https_errors=self.ignore_https_errors
        )
        try:
            logger.info(f"[API] → {method} {url}")
            started = time.monotonic()
            response = await context.fetch(url, **options)
            body = await parse_response_body(response)
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.info(
                f"[API] ← {response.status} {response.status_text} ({elapsed_ms:.0f} ms)"
            )
            return ApiResult(
                method=method,
                url=url,
                status=response.status,
                status_text=response.status_text,
                headers=dict(response.headers),
                body=body,
                elapsed_ms=elapsed_ms,
            )
        finally:
            await context.dispose()
