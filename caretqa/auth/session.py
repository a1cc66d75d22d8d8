"""
Session
=======
The authenticated bundle for one identity: bearer token, cookie header
and the metadata needed to decide whether it can still be reused.

Sessions are immutable once created.  A re-login produces a new Session
that replaces the old one in the cache; nothing mutates a stored entry.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Session:
    """Credentials harvested from one successful UI login."""

    identity: str
    bearer_token: str
    cookie_header: str
    base_url: str
    created_at: float = field(default_factory=time.time)
    """Epoch seconds of the successful login."""

    expires_in: float = 3600.0
    """Expiry hint in seconds.  Recorded, not enforced (see SessionCache)."""

    cookies: List[Dict[str, Any]] = field(default_factory=list, compare=False)
    """Raw cookie records from the browser context, as Playwright returns them."""

    # ── Age ───────────────────────────────────────────────────────

    def age(self, now: Optional[float] = None) -> float:
        """Seconds since login."""
        return (time.time() if now is None else now) - self.created_at

    def is_fresh(self, max_age: float, now: Optional[float] = None) -> bool:
        return self.age(now) < max_age

    @property
    def has_credentials(self) -> bool:
        """False when the server will certainly reject calls made with this session."""
        return bool(self.bearer_token and self.cookie_header)

    # ── Persistence shape ─────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "bearer_token": self.bearer_token,
            "cookie_header": self.cookie_header,
            "base_url": self.base_url,
            "created_at": self.created_at,
            "expires_in": self.expires_in,
            "cookies": list(self.cookies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            identity=data["identity"],
            bearer_token=data.get("bearer_token") or "",
            cookie_header=data.get("cookie_header") or "",
            base_url=data.get("base_url") or "",
            created_at=float(data["created_at"]),
            expires_in=float(data.get("expires_in", 3600.0)),
            cookies=list(data.get("cookies") or []),
        )

    def __repr__(self) -> str:
        # Token and cookies stay out of reprs so they never reach logs.
        return (
            f"<Session identity={self.identity!r} base_url={self.base_url!r} "
            f"created_at={self.created_at:.0f} token_len={len(self.bearer_token)}>"
        )
