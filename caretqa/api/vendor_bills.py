"""
Vendor Bills API
================
Validate bill numbers, create and delete vendor bills.

Bill-number validation answers with a bare boolean that means "already
in use": ``false`` is the good answer.  Creation posts the detail lines
and documents as JSON strings inside a form body, and the id comes back
in one of several shapes depending on the server build.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union

from ..auth.session import Session
from ..errors import CaretQAError, TransportError
from .base import ResourceResult, SupportsRequests, preview

logger = logging.getLogger(__name__)


DEFAULT_VENDOR_ID = "1"
DUE_IN_DAYS = 4

_ID_KEYS = ("id", "VendorBillId", "vendorBillId", "billId", "Id")


@dataclass
class VendorBillValidation(ResourceResult):
    is_valid: bool = False

    @property
    def is_available(self) -> bool:
        return self.is_valid


@dataclass
class VendorBillResult(ResourceResult):
    vendor_bill_id: Any = None
    bill_no: Optional[str] = None
    bill_vendor_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def default_bill_detail(
    *,
    account_id: int = 1312090,
    account_name: str = "placeholderaccount",
    description: Optional[str] = None,
    amount: str = "10",
    office_id: int = 2919,
    user_id: int = 31152,
) -> Dict[str, Any]:
    """One expense line shaped like the bill editor's detail row."""
    return {
        "descriptionCssClass": "",
        "id": 0,
        "index": 1,
        "accountId": account_id,
        "accountName": account_name,
        "description": description or f"API Test Vendor Bill {int(time.time() * 1000)}",
        "amount": amount,
        "matterId": "",
        "PIExpenseId": None,
        "piExpenseAmount": None,
        "matterName": "",
        "billable": False,
        "isPreloadedDetailData": False,
        "officeId": office_id,
        "officeName": "",
        "isDeleted": False,
        "templateName": "vb-details-show-template",
        "justCreated": True,
        "isEdited": False,
        "isInital": True,
        "isEditMode": True,
        "taskCodeList": [],
        "isMatterUtbms": False,
        "isMatterPIEnabled": False,
        "matterDrpClass": "rps-vb-matter-drp-wide",
        "userId": user_id,
        "invoicedStatusId": 0,
        "piExpenseDate": None,
        "matterContacts": [],
    }


def random_bill_no() -> str:
    return str(random.randint(100, 999))


def extract_vendor_bill_id(body: Any) -> Any:
    """Bill id from a create response.

    A bare number is the id.  An object is searched for the known id
    keys; when none is present the whole object is returned.
    """
    if isinstance(body, dict):
        for key in _ID_KEYS:
            if body.get(key):
                return body[key]
        logger.warning(
            f"[API] Could not extract vendor bill id from response: {preview(body)}"
        )
    return body


def _numeric_bill_id(vendor_bill_id: Any) -> Any:
    if isinstance(vendor_bill_id, dict):
        for key in ("id", "VendorBillId", "vendorBillId"):
            if vendor_bill_id.get(key):
                return vendor_bill_id[key]
    return vendor_bill_id


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def validate_bill_number(
    gateway: SupportsRequests,
    session: Session,
    bill_no: Union[int, str],
    bill_vendor_id: Union[int, str] = DEFAULT_VENDOR_ID,
) -> VendorBillValidation:
    """Check whether *bill_no* is still free for the vendor."""
    logger.info(f"[API] Validating bill number {bill_no} for vendor {bill_vendor_id}")
    result = await gateway.get(
        "/api2/VendorBill/ValidateVendorNo",
        session,
        params={"BillNo": bill_no, "BillVendorId": bill_vendor_id},
    )
    result.raise_for_status("validate vendor bill number")

    is_valid = result.body is False
    logger.info(f"[API] Bill number {bill_no} available: {is_valid}")
    return VendorBillValidation(
        success=True,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        is_valid=is_valid,
    )


async def create_vendor_bill(
    gateway: SupportsRequests,
    session: Session,
    *,
    bill_vendor_id: Union[int, str] = DEFAULT_VENDOR_ID,
    bill_no: Optional[Union[int, str]] = None,
    bill_date: Optional[str] = None,
    bill_due_date: Optional[str] = None,
    bill_address: str = "",
    bill_details: Optional[List[Dict[str, Any]]] = None,
    documents: Optional[List[Dict[str, Any]]] = None,
    validate: bool = True,
) -> VendorBillResult:
    """Create a vendor bill, validating its number first unless told not to.

    Dates are ``YYYY-MM-DD``; the bill date defaults to today and the due
    date to four days later.  A failed validation is logged and creation
    goes ahead.
    """
    today = date.today()
    bill_vendor_id = str(bill_vendor_id)
    bill_no = str(bill_no) if bill_no else random_bill_no()
    bill_details = bill_details if bill_details else [default_bill_detail()]
    documents = documents or []

    if validate:
        try:
            await validate_bill_number(gateway, session, bill_no, bill_vendor_id)
        except (CaretQAError, TransportError) as exc:
            logger.warning(
                f"[API] Bill number validation failed (continuing anyway): {exc}"
            )

    payload = {
        "billVendorId": bill_vendor_id,
        "billDate": bill_date or today.isoformat(),
        "billDueDate": bill_due_date or (today + timedelta(days=DUE_IN_DAYS)).isoformat(),
        "billNo": bill_no,
        "billAddress": bill_address,
        "billDetails": json.dumps(bill_details),
        "documents": json.dumps(documents),
    }
    logger.info(
        f"[API] Creating vendor bill {bill_no} for vendor {bill_vendor_id}: "
        f"{len(bill_details)} item(s), due {payload['billDueDate']}"
    )

    result = await gateway.post("/api2/vendorbill/", session, payload, content_type="form")
    result.raise_for_status("create vendor bill")

    vendor_bill_id = extract_vendor_bill_id(result.body)
    logger.info(
        f"[API] Vendor bill created: id {vendor_bill_id!r} ({result.elapsed_ms:.0f} ms)"
    )
    return VendorBillResult(
        success=True,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        vendor_bill_id=vendor_bill_id,
        bill_no=bill_no,
        bill_vendor_id=bill_vendor_id,
    )


async def delete_vendor_bill(
    gateway: SupportsRequests, session: Session, vendor_bill_id: Any
) -> VendorBillResult:
    """Delete a vendor bill by id, or by the object ``create_vendor_bill`` returned."""
    numeric_id = _numeric_bill_id(vendor_bill_id)
    logger.info(f"[API] Deleting vendor bill: {numeric_id}")

    result = await gateway.delete(f"/api2/VendorBill/{numeric_id}", session)
    result.raise_for_status(f"delete vendor bill {numeric_id}")

    body = result.body
    deleted = (
        body is True
        or (isinstance(body, dict) and body.get("success") is True)
        or result.status == 200
    )
    logger.info(f"[API] Vendor bill {numeric_id} deleted: {deleted}")
    return VendorBillResult(
        success=deleted,
        status=result.status,
        data=body,
        response_time_ms=result.elapsed_ms,
        vendor_bill_id=numeric_id,
    )
