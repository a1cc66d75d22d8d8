"""
Unified Run Configuration
=========================
Single source of truth for ALL suite defaults and runtime limits.

Every module (CLI, session cache, authenticator, API gateway, mailbox)
reads from this object.  Environment variables and CLI flags populate it;
nothing else hard-codes these numbers.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "default_url": "https://qa.zolastaging.com/Login.aspx",
    "auth_cache_dir": ".auth-cache",
    "auth_cache_file": "api-auth-cache.json",
    "session_max_age_minutes": 45.0,       # cache freshness window
    "session_expires_in_minutes": 60.0,    # stored hint only
    "session_expiring_soon_minutes": 40.0,  # stats bucket edge
    "api_timeout_ms": 30_000,
    "login_timeout_ms": 30_000,
    "login_success_timeout_ms": 10_000,
    "ci_timeout_multiplier": 2.0,
    "headless": True,
    "slow_mo_ms": 250,
    "warm_up_concurrency": 3,
    "nylas_api_uri": "https://api.us.nylas.com",
    "nylas_poll_interval_s": 20.0,
    "nylas_timeout_s": 300.0,
}

# Any of these set to a truthy value means "running in a pipeline".
_CI_ENV_FLAGS = ("CI", "GITHUB_ACTIONS", "QAWOLF_RUN_ID")

_FALSY = {"", "0", "false", "no", "off"}


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() not in _FALSY


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[CONFIG] Ignoring non-numeric {name}={raw!r}")
        return default


def detect_ci(env: Optional[Mapping[str, str]] = None) -> bool:
    """True when any known CI flag is set in *env* (default: ``os.environ``)."""
    env = os.environ if env is None else env
    return any(_env_flag(env, name) for name in _CI_ENV_FLAGS)


@dataclass
class RunConfig:
    """
    Unified configuration consumed by every subsystem.

    Populate via:
      - ``RunConfig()``                  → all defaults
      - ``RunConfig(default_user=...)``  → override one value
      - ``RunConfig.from_env()``         → from environment variables
      - ``RunConfig.from_cli_args(ns)``  → env + argparse overrides
    """

    # ---- Target application ----
    default_url: str = _DEFAULTS["default_url"]
    default_user: str = ""
    default_password: str = ""

    # ---- Session cache ----
    auth_cache_dir: str = _DEFAULTS["auth_cache_dir"]
    session_max_age_minutes: float = _DEFAULTS["session_max_age_minutes"]
    session_expires_in_minutes: float = _DEFAULTS["session_expires_in_minutes"]
    session_expiring_soon_minutes: float = _DEFAULTS["session_expiring_soon_minutes"]
    warm_up_concurrency: int = _DEFAULTS["warm_up_concurrency"]

    # ---- Timeouts (unscaled; see ``timeout_multiplier``) ----
    api_timeout_ms: int = _DEFAULTS["api_timeout_ms"]
    login_timeout_ms: int = _DEFAULTS["login_timeout_ms"]
    login_success_timeout_ms: int = _DEFAULTS["login_success_timeout_ms"]
    is_ci: bool = False
    ci_timeout_multiplier: float = _DEFAULTS["ci_timeout_multiplier"]

    # ---- Browser ----
    headless: bool = _DEFAULTS["headless"]
    slow_mo_ms: int = _DEFAULTS["slow_mo_ms"]

    # ---- Mailbox (Nylas v3) ----
    nylas_api_key: str = ""
    nylas_api_uri: str = _DEFAULTS["nylas_api_uri"]
    nylas_mailboxes: Dict[str, str] = field(default_factory=dict)
    nylas_poll_interval_s: float = _DEFAULTS["nylas_poll_interval_s"]
    nylas_timeout_s: float = _DEFAULTS["nylas_timeout_s"]

    # -----------------------------------------------------------------------
    # Derived values
    # -----------------------------------------------------------------------
    @property
    def base_url(self) -> str:
        """Application origin: ``default_url`` without the login page."""
        url = self.default_url.rstrip("/")
        if url.lower().endswith("/login.aspx"):
            url = url[: -len("/login.aspx")]
        return url

    @property
    def login_url(self) -> str:
        return self.base_url + "/Login.aspx"

    @property
    def auth_cache_file(self) -> Path:
        return Path(self.auth_cache_dir) / _DEFAULTS["auth_cache_file"]

    @property
    def timeout_multiplier(self) -> float:
        return self.ci_timeout_multiplier if self.is_ci else 1.0

    def scaled_ms(self, timeout_ms: float) -> int:
        """Scale a timeout for the current environment (CI runs are slower)."""
        return int(timeout_ms * self.timeout_multiplier)

    @property
    def session_max_age_s(self) -> float:
        return self.session_max_age_minutes * 60

    @property
    def session_expires_in_s(self) -> float:
        return self.session_expires_in_minutes * 60

    @property
    def session_expiring_soon_s(self) -> float:
        return self.session_expiring_soon_minutes * 60

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Build config from environment variables (``os.environ`` by default)."""
        env = os.environ if env is None else env

        mailboxes: Dict[str, str] = {}
        raw_mailboxes = env.get("NYLAS_MAILBOXES", "")
        if raw_mailboxes:
            # Lookup errors are reported lazily by caretqa.mail.grants
            try:
                parsed = json.loads(raw_mailboxes)
                if isinstance(parsed, dict):
                    mailboxes = {str(k): str(v) for k, v in parsed.items()}
            except ValueError:
                logger.warning("[CONFIG] NYLAS_MAILBOXES is not valid JSON")

        headless_raw = env.get("HEADLESS")
        return cls(
            default_url=env.get("DEFAULT_URL") or _DEFAULTS["default_url"],
            default_user=env.get("DEFAULT_USER", ""),
            default_password=env.get("DEFAULT_LEGAL_PASSWORD", ""),
            auth_cache_dir=env.get("AUTH_CACHE_DIR")
            or str(Path.cwd() / _DEFAULTS["auth_cache_dir"]),
            session_max_age_minutes=_env_float(
                env, "SESSION_MAX_AGE_MINUTES", _DEFAULTS["session_max_age_minutes"]
            ),
            session_expires_in_minutes=_env_float(
                env, "SESSION_EXPIRES_IN_MINUTES", _DEFAULTS["session_expires_in_minutes"]
            ),
            session_expiring_soon_minutes=_env_float(
                env,
                "SESSION_EXPIRING_SOON_MINUTES",
                _DEFAULTS["session_expiring_soon_minutes"],
            ),
            api_timeout_ms=int(
                _env_float(env, "API_TIMEOUT_MS", _DEFAULTS["api_timeout_ms"])
            ),
            is_ci=detect_ci(env),
            headless=_DEFAULTS["headless"]
            if headless_raw is None
            else _env_flag(env, "HEADLESS"),
            nylas_api_key=env.get("NYLAS_API_KEY", ""),
            nylas_api_uri=env.get("NYLAS_API_URI") or _DEFAULTS["nylas_api_uri"],
            nylas_mailboxes=mailboxes,
        )

    @classmethod
    def from_cli_args(cls, args, env: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Environment config with argparse overrides (``__main__.py``)."""
        cfg = cls.from_env(env)
        if getattr(args, "url", None):
            cfg.default_url = args.url
        if getattr(args, "cache_dir", None):
            cfg.auth_cache_dir = args.cache_dir
        if getattr(args, "max_age", None):
            cfg.session_max_age_minutes = float(args.max_age)
        if getattr(args, "concurrency", None):
            cfg.warm_up_concurrency = int(args.concurrency)
        if getattr(args, "headed", False):
            cfg.headless = False
        return cfg

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger (never logs secrets)."""
        logger.info("=" * 60)
        logger.info("CARET QA RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Base URL:         {self.base_url}")
        logger.info(f"  Default User:     {self.default_user or '(unset)'}")
        logger.info(f"  Auth Cache:       {self.auth_cache_file}")
        logger.info(f"  Freshness:        {self.session_max_age_minutes:g} min")
        logger.info(f"  Expires-In Hint:  {self.session_expires_in_minutes:g} min")
        logger.info(f"  API Timeout:      {self.scaled_ms(self.api_timeout_ms)} ms")
        if self.is_ci:
            logger.info(f"  CI Detected:      timeouts x{self.ci_timeout_multiplier:g}")
        logger.info(f"  Headless:         {self.headless}")
        if self.nylas_mailboxes:
            logger.info(f"  Nylas Mailboxes:  {len(self.nylas_mailboxes)} configured")
        logger.info("=" * 60)
