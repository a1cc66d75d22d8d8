"""
Contacts API
============
Person and company contacts under ``/api2/contact``.

List-valued fields are posted as the literal string ``"[]"`` and flags as
``"false"``, which is what the contact form itself sends.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Union

from ..auth.session import Session
from .base import ResourceResult, SupportsRequests, form_value, preview, with_defaults

logger = logging.getLogger(__name__)


_COMMON_DEFAULTS: Dict[str, str] = {
    "ActiveStatusId": "1",
    "EmailList": "[]",
    "WebsiteList": "[]",
    "PhoneList": "[]",
    "IMList": "[]",
    "AddressList": "[]",
    "ConsolidateInvoices": "false",
    "TransferSurcharge": "false",
    "ChargeInterest": "false",
    "Tags": "[]",
}

PERSON_DEFAULTS: Dict[str, str] = {
    **_COMMON_DEFAULTS,
    "CompanyId": "",
    "TimeEntryRuleList": "[]",
}

COMPANY_DEFAULTS: Dict[str, str] = dict(_COMMON_DEFAULTS)


def build_person_payload(first_name: str, last_name: str, **fields: Any) -> Dict[str, str]:
    payload = with_defaults(
        {"FirstName": first_name, "LastName": last_name, **PERSON_DEFAULTS}, fields
    )
    return {k: form_value(v) for k, v in payload.items()}


def build_company_payload(name: str, **fields: Any) -> Dict[str, str]:
    payload = with_defaults({"Name": name, **COMPANY_DEFAULTS}, fields)
    return {k: form_value(v) for k, v in payload.items()}


async def create_person(
    gateway: SupportsRequests,
    session: Session,
    first_name: str,
    last_name: str,
    **fields: Any,
) -> ResourceResult:
    """Create a person contact.  Extra *fields* use the API's own names."""
    if not first_name or not last_name:
        raise ValueError("first_name and last_name are required for a person contact")

    logger.info(f"[API] Creating person contact: {first_name} {last_name}")
    result = await gateway.post(
        "/api2/contact/person",
        session,
        build_person_payload(first_name, last_name, **fields),
        content_type="form",
    )
    result.raise_for_status("create contact")
    logger.info(f"[API] Contact created: {preview(result.body)}")
    return ResourceResult.from_api(result)


async def create_company(
    gateway: SupportsRequests,
    session: Session,
    name: str,
    **fields: Any,
) -> ResourceResult:
    if not name:
        raise ValueError("name is required for a company contact")

    logger.info(f"[API] Creating company contact: {name}")
    result = await gateway.post(
        "/api2/contact/company",
        session,
        build_company_payload(name, **fields),
        content_type="form",
    )
    result.raise_for_status("create company")
    logger.info("[API] Company created")
    return ResourceResult.from_api(result)


async def get_contact(
    gateway: SupportsRequests, session: Session, contact_id: Union[int, str]
) -> ResourceResult:
    logger.info(f"[API] Fetching contact: {contact_id}")
    result = await gateway.get(f"/api2/contact/{contact_id}", session)
    result.raise_for_status("get contact")
    return ResourceResult.from_api(result)


async def delete_contact(
    gateway: SupportsRequests, session: Session, contact_id: Union[int, str]
) -> ResourceResult:
    logger.info(f"[API] Deleting contact: {contact_id}")
    result = await gateway.delete(f"/api2/contact/{contact_id}", session)
    result.raise_for_status("delete contact")
    logger.info(f"[API] Contact {contact_id} deleted")
    return ResourceResult.from_api(result)
