"""
API Module
==========
Authenticated calls against the application's ``/api2`` surface.

Architecture:
    - ``ApiGateway``     — one call per fresh request context, uniform parsing
    - ``contacts``       — person / company contacts
    - ``matters``        — create / delete matters
    - ``time_entries``   — create / delete time entries
    - ``vendor_bills``   — validate numbers, create / delete bills

Usage::

    from caretqa.api import ApiGateway, matters

    async with ApiGateway() as api:
        created = await matters.create_matter(api, session)
        await matters.delete_matter(api, session, created.matter_id)
"""

from . import contacts, matters, time_entries, vendor_bills
from .base import ResourceResult
from .gateway import (
    ApiGateway,
    ApiResult,
    build_full_url,
    is_success,
    parse_body_text,
    parse_response_body,
    standard_headers,
)

__all__ = [
    "ApiGateway",
    "ApiResult",
    "ResourceResult",
    "build_full_url",
    "is_success",
    "parse_body_text",
    "parse_response_body",
    "standard_headers",
    "contacts",
    "matters",
    "time_entries",
    "vendor_bills",
]
