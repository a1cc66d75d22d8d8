"""
Time Entries API
================
Create and delete time entries on an existing matter.

The create endpoint answers with the saved entry as an object; its id is
``tien_id``.  Field names are the API's own, including ``tien_isHiustorical``
which really is spelled that way on the server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from ..auth.session import Session
from .base import ResourceResult, SupportsRequests, form_value, preview, with_defaults

logger = logging.getLogger(__name__)


DEFAULT_DURATION_S = "5400"  # 1.5 h

TIME_ENTRY_DEFAULTS: Dict[str, str] = {
    "tien_matteruserid": "34701",
    "tien_timetype": "2",
    "tien_duration": DEFAULT_DURATION_S,
    "tien_worktypeid": "5897",
    "tien_worktypeIsUTBMS": "false",
    "tien_rate": "20.00",
    "tien_description": "",
    "tien_total": "123",
    "tien_isHiustorical": "false",
    "tien_isNoCharge": "false",
    "tien_isNcds": "false",
    "tien_isAdmin": "false",
    "tien_isSplit": "false",
    "tien_splitUsers": "[]",
    "ExcludeFromAllocation": "false",
}


@dataclass
class TimeEntryResult(ResourceResult):
    time_entry_id: Optional[Union[int, str]] = None
    matter_id: Optional[str] = None


def format_work_date(when: datetime) -> str:
    """``M/D/YYYY h:mm AM`` as the time sheet posts it, without zero padding."""
    hour = when.hour % 12 or 12
    meridiem = "PM" if when.hour >= 12 else "AM"
    return f"{when.month}/{when.day}/{when.year} {hour}:{when.minute:02d} {meridiem}"


def build_time_entry_payload(
    tien_matterid: Union[int, str], now: Optional[datetime] = None, **fields: Any
) -> Dict[str, str]:
    if not tien_matterid:
        raise ValueError("tien_matterid is required for creating a time entry")

    defaults = {
        "tien_matterid": str(tien_matterid),
        **TIME_ENTRY_DEFAULTS,
        "tien_workdate": format_work_date(now or datetime.now()),
    }
    payload = with_defaults(defaults, fields)
    if not fields.get("tien_actualduration"):
        payload["tien_actualduration"] = payload["tien_duration"]
    return {k: form_value(v) for k, v in payload.items()}


async def create_time_entry(
    gateway: SupportsRequests,
    session: Session,
    tien_matterid: Union[int, str],
    **fields: Any,
) -> TimeEntryResult:
    """Record time against *tien_matterid*.

    Raises:
        ValueError: no matter id given.
        ApiError:   non-2xx response.
    """
    payload = build_time_entry_payload(tien_matterid, **fields)
    hours = float(payload["tien_duration"]) / 3600
    logger.info(
        f"[API] Creating time entry on matter {payload['tien_matterid']}: "
        f"{hours:.2f} h at {payload['tien_workdate']} "
        f"(no charge: {payload['tien_isNoCharge']})"
    )

    result = await gateway.post("/api2/time/", session, payload, content_type="form")
    result.raise_for_status("create time entry")

    entry_id = result.body.get("tien_id") if isinstance(result.body, dict) else None
    if not entry_id:
        logger.warning(f"[API] Time entry response has no tien_id: {preview(result.body)}")
    else:
        logger.info(f"[API] Time entry created: id {entry_id} ({result.elapsed_ms:.0f} ms)")

    return TimeEntryResult(
        success=True,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        time_entry_id=entry_id,
        matter_id=payload["tien_matterid"],
    )


async def delete_time_entry(
    gateway: SupportsRequests, session: Session, time_entry_id: Union[int, str]
) -> TimeEntryResult:
    logger.info(f"[API] Deleting time entry: {time_entry_id}")
    result = await gateway.delete(f"/api2/Time/{time_entry_id}", session)
    result.raise_for_status("delete time entry")
    logger.info(f"[API] Time entry {time_entry_id} deleted")
    return TimeEntryResult(
        success=True,
        status=result.status,
        data=result.body,
        response_time_ms=result.elapsed_ms,
        time_entry_id=time_entry_id,
    )
