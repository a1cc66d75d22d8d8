"""
Grant Lookup
============
Maps a mailbox address to its Nylas grant id.

The mapping lives in ``NYLAS_MAILBOXES`` as a JSON object, e.g.::

    NYLAS_MAILBOXES={"qa1@firm.test": "grant_123", "qa2@firm.test": "grant_456"}
"""

from __future__ import annotations

import json
import os
from typing import Dict, Optional

from ..errors import MailboxConfigError

ENV_VAR = "NYLAS_MAILBOXES"


def load_mailbox_map(mailboxes_json: Optional[str] = None) -> Dict[str, str]:
    """Parse the address → grant mapping.  Reads the environment when not given."""
    raw = mailboxes_json if mailboxes_json is not None else os.environ.get(ENV_VAR)
    if not raw:
        raise MailboxConfigError(
            f'Environment variable {ENV_VAR} is missing. '
            f'Example: {ENV_VAR}={{"email":"grant"}}'
        )
    try:
        mapping = json.loads(raw)
    except ValueError:
        raise MailboxConfigError(f"{ENV_VAR} is not valid JSON. Fix your .env file.") from None
    if not isinstance(mapping, dict):
        raise MailboxConfigError(f"{ENV_VAR} must be a JSON object of email → grant id")
    return mapping


def grant_id_for_email(email: str, mailboxes_json: Optional[str] = None) -> str:
    """Grant id for *email*.

    Raises:
        MailboxConfigError: mapping missing, not JSON, or no entry for *email*.
    """
    grant_id = load_mailbox_map(mailboxes_json).get(email)
    if not grant_id:
        raise MailboxConfigError(f"No grant id found for mailbox: {email}")
    return grant_id
