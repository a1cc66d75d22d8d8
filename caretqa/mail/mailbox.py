"""
Mailbox
=======
Test-facing helpers for one Nylas grant: find messages by subject, wait
for them to arrive, read their text and attachments.

Subject search uses the provider's native query syntax
(``subject:<text>``), so matching rules are the provider's own.

Usage::

    mailbox = get_mailbox_for("qa1@firm.test")
    message = mailbox.wait_for_email("Your invoice is ready")
    text = mailbox.get_body_content("Your invoice is ready")
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from ..errors import CaretQAError, MailboxConfigError, MailboxTimeout, MessageNotFoundError
from ..run_config import RunConfig
from .grants import grant_id_for_email
from .nylas_client import NylasClient

logger = logging.getLogger(__name__)


DEFAULT_POLL_INTERVAL_S = 2.0
DEFAULT_TIMEOUT_S = 30.0


def html_to_text(html: str) -> str:
    """Readable text from an email body; plain text passes through."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    return soup.get_text(separator="\n", strip=True)


def _subject_query(subject: str) -> str:
    return f"subject:{subject}"


class Mailbox:
    """Read-only view over one grant's messages.

    Args:
        client:         Connected ``NylasClient``.
        grant_id:       Grant for the mailbox.
        poll_interval:  Seconds between polls in ``wait_for_email``.
        timeout:        Seconds ``wait_for_email`` waits in total.
    """

    def __init__(
        self,
        client: NylasClient,
        grant_id: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        timeout: float = DEFAULT_TIMEOUT_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not grant_id:
            raise MailboxConfigError("grant_id is required to build a mailbox")
        self.client = client
        self.grant_id = grant_id
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    # ── Lookup ────────────────────────────────────────────────────

    def list_messages(self, **query: Any) -> List[Dict[str, Any]]:
        """Raw listing; *query* goes straight to the Nylas query string."""
        return self.client.list_messages(self.grant_id, **query)

    def search_by_subject(self, subject: str, limit: Optional[int] = None) -> Dict[str, Any]:
        """Newest message matching *subject*.

        Raises:
            MessageNotFoundError: nothing matched.
        """
        messages = self.client.list_messages(
            self.grant_id, search_query_native=_subject_query(subject), limit=limit
        )
        if not messages:
            raise MessageNotFoundError(f"No messages found for subject: {subject}")
        return messages[0]

    def get_latest_email(self, subject: str) -> Dict[str, Any]:
        return self.search_by_subject(subject, limit=1)

    def wait_for_email(self, subject: str) -> Dict[str, Any]:
        """Poll until a message matching *subject* shows up.

        Lookup errors during polling are treated as "not yet" and retried.

        Raises:
            MailboxTimeout: nothing arrived within ``timeout`` seconds.
        """
        started = self._clock()
        while self._clock() - started < self.timeout:
            try:
                message = self.search_by_subject(subject, limit=1)
            except (MessageNotFoundError, requests.RequestException) as exc:
                logger.debug(f"[NYLAS] Email not found yet, retrying: {exc}")
            else:
                logger.info(
                    f"[NYLAS] Email arrived after {self._clock() - started:.1f}s: {subject}"
                )
                return message
            self._sleep(self.poll_interval)

        logger.info(f"[NYLAS] Gave up waiting after {self._clock() - started:.1f}s")
        raise MailboxTimeout(
            f'Email with subject "{subject}" not found within {self.timeout:g} s'
        )

    def get_message_id(self, subject: str) -> Optional[str]:
        """Id of the newest message matching *subject*, or None."""
        if not subject or not subject.strip():
            logger.error("[NYLAS] A non-empty subject is required")
            return None
        try:
            messages = self.client.list_messages(
                self.grant_id, search_query_native=_subject_query(subject)
            )
        except requests.RequestException as exc:
            logger.error(f"[NYLAS] Error fetching message id for '{subject}': {exc}")
            return None

        if not messages or not messages[0].get("id"):
            logger.info(f"[NYLAS] No messages found with subject: {subject}")
            return None
        message_id = messages[0]["id"]
        logger.info(f"[NYLAS] Found message id {message_id}")
        return message_id

    # ── Content ───────────────────────────────────────────────────

    def get_body_content(self, subject: str) -> Optional[str]:
        """Body of the newest matching message as plain text, or None."""
        message_id = self.get_message_id(subject)
        if not message_id:
            return None

        message = self.client.find_message(self.grant_id, message_id)
        if not message:
            raise MessageNotFoundError(f"Message {message_id} not found or malformed")

        text = html_to_text(message.get("body") or message.get("snippet") or "")
        if not text:
            logger.warning(f"[NYLAS] No body content for subject: {subject}")
            return None
        return text

    def get_attachment_metadata(self, message_id: str) -> List[Dict[str, Any]]:
        if not message_id:
            raise ValueError("message_id is required")
        message = self.client.find_message(self.grant_id, message_id)
        attachments = message.get("attachments") or []
        if not attachments:
            logger.warning(f"[NYLAS] No attachments found for message {message_id}")
        else:
            logger.info(f"[NYLAS] {len(attachments)} attachment(s) on message {message_id}")
        return attachments

    def get_attachment_id(self, message_id: str) -> Optional[str]:
        """Id of the first attachment on *message_id*, or None when it has none."""
        attachments = self.get_attachment_metadata(message_id)
        if not attachments:
            return None
        attachment_id = attachments[0].get("id")
        if not attachment_id:
            raise CaretQAError(f"Attachment metadata missing 'id' for message {message_id}")
        return attachment_id

    def download_attachment(self, subject: str) -> bytes:
        """Bytes of the first attachment on the newest message matching *subject*."""
        if not subject:
            raise ValueError("subject is required")
        message_id = self.get_message_id(subject)
        if not message_id:
            raise MessageNotFoundError(f"No messages found for subject: {subject}")
        attachment_id = self.get_attachment_id(message_id)
        if not attachment_id:
            raise MessageNotFoundError(f"Message {message_id} has no attachments")

        logger.info(
            f"[NYLAS] Downloading attachment {attachment_id} from message {message_id}"
        )
        content = self.client.download_attachment(self.grant_id, attachment_id, message_id)
        logger.info(f"[NYLAS] Downloaded {len(content)} bytes")
        return content

    def get_all_params(self, subject: str) -> Optional[Dict[str, Any]]:
        """Subject, attachment metadata and body text in one dict; None on failure."""
        if not subject or not subject.strip():
            logger.error("[NYLAS] A non-empty subject is required")
            return None
        try:
            message_id = self.get_message_id(subject)
            if not message_id:
                return None
            message = self.client.find_message(self.grant_id, message_id)
        except (CaretQAError, requests.RequestException) as exc:
            logger.error(f"[NYLAS] Failed to collect params for '{subject}': {exc}")
            return None
        if not message:
            logger.error(f"[NYLAS] Message {message_id} not found or malformed")
            return None

        # Every field comes from the same message
        return {
            "subject": message.get("subject") or "",
            "attachment_metadata": message.get("attachments") or [],
            "body_content": html_to_text(message.get("body") or message.get("snippet") or ""),
        }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def get_mailbox_for(
    email: str,
    config: Optional[RunConfig] = None,
    client: Optional[NylasClient] = None,
) -> Mailbox:
    """Mailbox for *email* with the suite's polling defaults (20 s / 5 min).

    Raises:
        MailboxConfigError: missing API key or no grant for *email*.
    """
    config = config or RunConfig.from_env()
    grant_id = config.nylas_mailboxes.get(email)
    if not grant_id:
        # Re-read the raw variable so the error says what is wrong with it
        grant_id = grant_id_for_email(email)
    client = client or NylasClient(config.nylas_api_key, config.nylas_api_uri)
    logger.info(f"[NYLAS] Mailbox ready for {email}")
    return Mailbox(
        client,
        grant_id,
        poll_interval=config.nylas_poll_interval_s,
        timeout=config.nylas_timeout_s,
    )
