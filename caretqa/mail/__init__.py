"""
Mail Module
===========
Read test mailboxes through Nylas v3.

Usage::

    from caretqa.mail import get_mailbox_for

    mailbox = get_mailbox_for("qa1@firm.test")
    message = mailbox.wait_for_email("Invoice INV-1001")
"""

from .grants import grant_id_for_email, load_mailbox_map
from .mailbox import Mailbox, get_mailbox_for, html_to_text
from .nylas_client import NylasClient

__all__ = [
    "grant_id_for_email",
    "load_mailbox_map",
    "Mailbox",
    "get_mailbox_for",
    "html_to_text",
    "NylasClient",
]
