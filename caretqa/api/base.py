"""
Resource Client Base
====================
Shared result type and helpers for the per-resource API modules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from ..auth.session import Session
from .gateway import ApiResult

logger = logging.getLogger(__name__)


class SupportsRequests(Protocol):
    """What a resource client needs from a gateway."""

    async def get(self, path: str, session: Session, **kwargs) -> ApiResult: ...

    async def post(self, path: str, session: Session, payload: Any = None, **kwargs) -> ApiResult: ...

    async def put(self, path: str, session: Session, payload: Any = None, **kwargs) -> ApiResult: ...

    async def delete(self, path: str, session: Session, **kwargs) -> ApiResult: ...


@dataclass
class ResourceResult:
    """Outcome of one successful resource call."""
    success: bool
    status: int
    data: Any = None
    response_time_ms: float = 0.0

    @classmethod
    def from_api(cls, result: ApiResult, success: bool = True) -> "ResourceResult":
        return cls(
            success=success,
            status=result.status,
            data=result.body,
            response_time_ms=result.elapsed_ms,
        )


def with_defaults(defaults: Mapping[str, Any], overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy *defaults* and apply every override that is not None or empty."""
    payload = dict(defaults)
    for key, value in (overrides or {}).items():
        if value is None or value == "":
            continue
        payload[key] = value
    return payload


def form_value(value: Any) -> str:
    """Render a Python value the way the web forms post it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def preview(body: Any, limit: int = 200) -> str:
    text = body if isinstance(body, str) else repr(body)
    return text if len(text) <= limit else text[:limit] + "…"
