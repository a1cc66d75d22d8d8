"""
Session Cache
=============
Reuses recently established sessions per identity so that each test does
not pay for a browser login.

Responsibilities:
    1. Return a cached ``Session`` while it is inside the freshness window
    2. Delegate to the authenticator on a miss or a stale entry
    3. Collapse concurrent misses for one identity into one login
    4. Mirror the mapping to a JSON file for cross-process warm starts
    5. Report per-identity age buckets for observability

The cache is an explicitly constructed object.  Build one per test
session (or per process) and pass it to whatever drives the workflows.

Usage::

    cache = SessionCache(Authenticator(config), cache_file=config.auth_cache_file)
    cache.load_from_disk()
    session = await cache.get_or_create("user@firm.test", "secret")
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from .base_auth import Credentials
from .session import Session

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings
# ---------------------------------------------------------------------------

_MAX_AGE_S = 45 * 60
_EXPIRING_SOON_S = 40 * 60
_DEFAULT_CONCURRENCY = 3


def _cancel_requested() -> bool:
    """True when the running task itself has a pending cancellation (3.11+)."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling and cancelling())


class SupportsAuthenticate(Protocol):
    async def authenticate(self, identity: str, secret: str) -> Session:
        ...


@dataclass
class CacheStats:
    """Age buckets for every cached entry."""
    total: int = 0
    valid: int = 0
    expiring_soon: int = 0
    expired: int = 0
    users: List[Dict[str, object]] = field(default_factory=list)


class SessionCache:
    """In-memory session map with optional JSON persistence.

    Args:
        authenticator:  Object with ``async authenticate(identity, secret)``.
        cache_file:     JSON file used by ``load_from_disk`` / ``save_to_disk``.
                        ``None`` disables persistence.
        max_age:        Freshness window in seconds (default 45 min).
        expiring_soon:  Age in seconds after which ``stats`` reports an entry
                        as expiring soon (default 40 min).
        clock:          Returns "now" in epoch seconds.
    """

    def __init__(
        self,
        authenticator: SupportsAuthenticate,
        *,
        cache_file: Optional[Union[str, Path]] = None,
        max_age: float = _MAX_AGE_S,
        expiring_soon: float = _EXPIRING_SOON_S,
        clock: Callable[[], float] = time.time,
    ):
        self.authenticator = authenticator
        self.cache_file = Path(cache_file) if cache_file else None
        self.max_age = max_age
        self.expiring_soon = expiring_soon
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}

    @classmethod
    def from_config(cls, config, authenticator: SupportsAuthenticate, **kwargs) -> "SessionCache":
        """Build a cache wired to a ``RunConfig``'s file and windows."""
        return cls(
            authenticator,
            cache_file=config.auth_cache_file,
            max_age=config.session_max_age_s,
            expiring_soon=config.session_expiring_soon_s,
            **kwargs,
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions

    # ── Public API ────────────────────────────────────────────────

    async def get_or_create(self, identity: str, secret: str) -> Session:
        """Return a fresh session for *identity*, logging in only if needed.

        Concurrent callers that miss on the same identity share a single
        login: the first one authenticates, the rest await its outcome
        (including its failure).  If that first caller is cancelled, the
        others start or join a fresh login instead of being cancelled too.

        Raises:
            AuthenticationError: propagated from the authenticator.  The
                cache is left exactly as it was.
        """
        while True:
            cached = self._sessions.get(identity)
            if cached is not None:
                age = cached.age(self._clock())
                if age < self.max_age:
                    logger.info(
                        f"[SESSION] Using cached auth for {identity} "
                        f"(age: {round(age / 60)} min)"
                    )
                    return cached
                logger.info(
                    f"[SESSION] Cached auth expired for {identity} "
                    f"(age: {round(age / 60)} min), re-authenticating"
                )

            pending = self._in_flight.get(identity)
            if pending is None:
                return await self._authenticate(identity, secret)

            logger.info(f"[SESSION] Joining in-flight login for {identity}")
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled() or _cancel_requested():
                    raise
                logger.warning(
                    f"[SESSION] In-flight login for {identity} was cancelled, retrying"
                )

    def get(self, identity: str) -> Optional[Session]:
        """Cached session for *identity* without logging in.

        Stale entries are still returned, with a warning.
        """
        session = self._sessions.get(identity)
        if session is None:
            logger.warning(f"[SESSION] No auth data found for {identity}")
            return None
        age = session.age(self._clock())
        if age > self.max_age:
            logger.warning(
                f"[SESSION] Auth data for {identity} is {round(age / 60)} "
                f"minutes old, may be expired"
            )
        return session

    def put(self, session: Session) -> None:
        """Store *session*, replacing any entry for the same identity."""
        self._sessions[session.identity] = session

    def invalidate(self, identity: str) -> bool:
        """Drop the entry for *identity*.  Returns True if one existed."""
        removed = self._sessions.pop(identity, None) is not None
        if removed:
            logger.info(f"[SESSION] Invalidated cached auth for {identity}")
        return removed

    def clear(self) -> None:
        self._sessions.clear()
        logger.info("[SESSION] Auth cache cleared")

    def stats(self) -> CacheStats:
        """Classify every entry as valid, expiring soon, or expired."""
        now = self._clock()
        stats = CacheStats(total=len(self._sessions))
        for identity, session in self._sessions.items():
            age = session.age(now)
            if age > self.max_age:
                status = "expired"
                stats.expired += 1
            elif age > self.expiring_soon:
                status = "expiring-soon"
                stats.expiring_soon += 1
            else:
                status = "valid"
                stats.valid += 1
            stats.users.append(
                {"identity": identity, "age_minutes": round(age / 60), "status": status}
            )
        return stats

    # ── Persistence ───────────────────────────────────────────────

    def load_from_disk(self) -> int:
        """Merge fresh entries from ``cache_file`` into memory.

        Missing or unreadable files are logged and ignored.

        Returns:
            Number of entries loaded.
        """
        if self.cache_file is None:
            return 0
        if not self.cache_file.exists():
            logger.info("[SESSION] No auth cache file found, starting fresh")
            return 0

        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(f"[SESSION] Failed to load auth cache: {exc}")
            return 0
        if not isinstance(data, dict):
            logger.warning("[SESSION] Auth cache file is not a JSON object — ignored")
            return 0

        now = self._clock()
        loaded = expired = 0
        for identity, raw in data.items():
            try:
                session = Session.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"[SESSION] Skipping malformed entry for {identity}: {exc}")
                continue

            if not session.is_fresh(self.max_age, now):
                expired += 1
                continue

            current = self._sessions.get(identity)
            if current is None or current.created_at < session.created_at:
                self._sessions[identity] = session
            loaded += 1

        logger.info(f"[SESSION] Loaded auth cache: {loaded} valid, {expired} expired")
        return loaded

    def save_to_disk(self) -> bool:
        """Write the whole mapping to ``cache_file``.

        Written to a temp file in the same directory, then renamed over
        the target, so readers never see a half-written file.  Failures
        are logged and reported through the return value.
        """
        if self.cache_file is None:
            return False

        payload = {identity: s.to_dict() for identity, s in self._sessions.items()}
        tmp_name = None
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.cache_file.parent), prefix=".auth-cache-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_name, self.cache_file)
        except OSError as exc:
            logger.warning(f"[SESSION] Failed to save auth cache: {exc}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

        logger.info(f"[SESSION] Saved auth cache: {len(payload)} users → {self.cache_file}")
        return True

    # ── Bulk ──────────────────────────────────────────────────────

    async def warm_up(
        self,
        users: Iterable[Union[Credentials, Tuple[str, str]]],
        *,
        concurrency: int = _DEFAULT_CONCURRENCY,
    ) -> Dict[str, Session]:
        """Authenticate many users up front, at most *concurrency* at a time.

        Loads the disk cache first and saves it afterwards.  A failing
        user is logged and skipped; it never aborts the others.

        Returns:
            identity → Session for every user that succeeded.
        """
        pairs = [
            (u.username, u.password) if isinstance(u, Credentials) else tuple(u)
            for u in users
        ]
        logger.info(
            f"[SESSION] Setting up auth for {len(pairs)} users "
            f"(concurrency: {concurrency})"
        )
        self.load_from_disk()

        semaphore = asyncio.Semaphore(max(1, concurrency))
        results: Dict[str, Session] = {}
        errors: List[Tuple[str, str]] = []

        async def _one(identity: str, secret: str) -> None:
            async with semaphore:
                try:
                    results[identity] = await self.get_or_create(identity, secret)
                except Exception as exc:
                    errors.append((identity, str(exc)))

        await asyncio.gather(*(_one(i, s) for i, s in pairs))
        self.save_to_disk()

        logger.info(f"[SESSION] Successfully authenticated: {len(results)} users")
        for identity, message in errors:
            logger.error(f"[SESSION] Failed: {identity}: {message}")
        return results

    # ── Internal ──────────────────────────────────────────────────

    async def _authenticate(self, identity: str, secret: str) -> Session:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight[identity] = future
        try:
            session = await self.authenticator.authenticate(identity, secret)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved: with no followers nobody else will read it.
            future.exception()
            raise
        else:
            self._sessions[identity] = session
            future.set_result(session)
            return session
        finally:
            self._in_flight.pop(identity, None)
