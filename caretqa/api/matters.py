"""
Matters API
===========
Create and delete matters.

``POST /api2/Matter/`` answers with the bare matter id (a JSON number),
not an object.  ``DELETE /api2/DeleteMatter`` takes the id in a JSON body
and answers ``true`` when the matter was removed.

The default payload targets the QA tenant's fixture client
("Pawnee Parks and Recreation") and its practice area, attorney and
office; override any of them with keyword arguments named as the API
names them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Union

from ..auth.session import Session
from .base import ResourceResult, SupportsRequests, form_value, with_defaults

logger = logging.getLogger(__name__)


MATTER_DEFAULTS: Dict[str, str] = {
    "MatterActiveStatusId": "1",
    "MatterStatusId": "1",
    # Practice area
    "MatterPracticeAreaId": "30548",
    "MatterPracticeArea": "Business Development",
    # Client
    "MatterClientName": "Pawnee Parks and Recreation",
    "MatterClient": "1398602",
    # Staff and office
    "MatterAttorneyInchargeId": "34705",
    "MatterOfficeId": "2919",
    # Billing
    "MatterBillingType": "1",
    "MatterCurrencyId": "1",
    "MatterIsFlatFeeAllocationEnabled": "0",
    "MatterIncrement": "6",
    "MatterIsRestricted": "false",
    # JSON arrays, posted as strings
    "AdditionalClientInMatterList": "[]",
    "CustomUserRates": "[]",
    "Originators": "[]",
    "Responsible": "[]",
    "SelectedUTBMS": "[]",
    "PreferredMethod": "0",
    "SoftCostRevPercentage": "0.00",
    "SplitBilling": "false",
    "InvoicePrintTemplateId": "3172",
    "EnablePIModule": "false",
    # Interest
    "ChargeInterest": "false",
    "InterestRate": "0",
    "InterestType": "0",
    "InterestPeriod": "0",
    "InterestGracePeriod": "0",
    "TimeEntryRuleIds": "",
}


@dataclass
class MatterResult(ResourceResult):
    matter_id: Optional[Union[int, str]] = None


def build_matter_payload(today: Optional[date] = None, **fields: Any) -> Dict[str, str]:
    """Full form payload: defaults, a unique name and today's open date."""
    today = today or date.today()
    defaults = {
        "MatterName": f"API_Test_Matter_{int(time.time() * 1000)}",
        "MatterOpenDate": today.strftime("%Y/%m/%d"),
        **MATTER_DEFAULTS,
    }
    payload = with_defaults(defaults, fields)
    return {k: form_value(v) for k, v in payload.items()}


async def create_matter(
    gateway: SupportsRequests, session: Session, **fields: Any
) -> MatterResult:
    """Create a matter and return its id."""
    payload = build_matter_payload(**fields)
    logger.info(
        f"[API] Creating matter '{payload['MatterName']}' for "
        f"{payload['MatterClientName']} (client {payload['MatterClient']}), "
        f"opened {payload['MatterOpenDate']}"
    )

    result = await gateway.post("/api2/Matter/", session, payload, content_type="form")
    result.raise_for_status("create matter")

    matter_id = result.body
    logger.info(f"[API] Matter created: id {matter_id} ({result.elapsed_ms:.0f} ms)")
    return MatterResult(
        success=True,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        matter_id=matter_id,
    )


async def delete_matter(
    gateway: SupportsRequests, session: Session, matter_id: Union[int, str]
) -> MatterResult:
    """Delete a matter.  ``success`` is True only when the API answers ``true``."""
    numeric_id = int(matter_id)
    logger.info(f"[API] Deleting matter: {numeric_id}")

    result = await gateway.delete(
        "/api2/DeleteMatter",
        session,
        data={"MatterId": numeric_id},
        content_type="json",
    )
    result.raise_for_status("delete matter")

    deleted = result.body is True
    if deleted:
        logger.info(f"[API] Matter {numeric_id} deleted ({result.elapsed_ms:.0f} ms)")
    else:
        logger.warning(f"[API] Delete matter {numeric_id} answered {result.body!r}")
    return MatterResult(
        success=deleted,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        matter_id=matter_id,
    )
