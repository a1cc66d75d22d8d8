"""
Nylas Client
============
Thin synchronous wrapper over the Nylas v3 REST API, enough for reading
test mailboxes.

Endpoints used:
    GET /v3/grants/{grant}/messages                        list / search
    GET /v3/grants/{grant}/messages/{id}                   one message
    GET /v3/grants/{grant}/attachments/{id}/download       raw bytes

Usage::

    with NylasClient.from_env() as client:
        page = client.list_messages(grant_id, search_query_native="subject:Invoice", limit=1)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import requests

from ..errors import MailboxConfigError

logger = logging.getLogger(__name__)


DEFAULT_API_URI = "https://api.us.nylas.com"
DEFAULT_TIMEOUT_S = 30


class NylasClient:
    """Bearer-authenticated ``requests.Session`` bound to one Nylas region.

    Args:
        api_key: Nylas application API key.
        api_uri: Region base URL (US by default).
        timeout: Per-request timeout in seconds.

    Raises:
        MailboxConfigError: no API key.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_uri: str = DEFAULT_API_URI,
        timeout: float = DEFAULT_TIMEOUT_S,
    ):
        if not api_key:
            raise MailboxConfigError("NYLAS_API_KEY is required in environment variables.")
        self.api_uri = (api_uri or DEFAULT_API_URI).rstrip("/")
        self.timeout = timeout
        self._session = self._create_session(api_key)

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "NylasClient":
        env = os.environ if env is None else env
        return cls(env.get("NYLAS_API_KEY"), env.get("NYLAS_API_URI") or DEFAULT_API_URI)

    @staticmethod
    def _create_session(api_key: str) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })
        return session

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "NylasClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Endpoints ─────────────────────────────────────────────────

    def list_messages(self, grant_id: str, **query: Any) -> List[Dict[str, Any]]:
        """Messages for *grant_id*, newest first.  *query* is passed through."""
        params = {k: v for k, v in query.items() if v is not None}
        response = self._get(f"/v3/grants/{grant_id}/messages", params=params)
        return response.json().get("data") or []

    def find_message(self, grant_id: str, message_id: str) -> Dict[str, Any]:
        response = self._get(f"/v3/grants/{grant_id}/messages/{message_id}")
        return response.json().get("data") or {}

    def download_attachment(self, grant_id: str, attachment_id: str, message_id: str) -> bytes:
        response = self._get(
            f"/v3/grants/{grant_id}/attachments/{attachment_id}/download",
            params={"message_id": message_id},
        )
        return response.content

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.api_uri}{path}"
        logger.debug(f"[NYLAS] GET {path} {params or ''}")
        response = self._session.get(url, params=params, timeout=self.timeout)
        if response.status_code >= 400:
            logger.error(
                f"[NYLAS] GET {path} → {response.status_code}: {response.text[:200]}"
            )
        response.raise_for_status()
        return response
