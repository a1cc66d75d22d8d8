#!/usr/bin/env python3
"""
CARET QA Command Line
=====================
Session-cache housekeeping for test runs.

Commands:
    login        Log users in through the UI and persist their sessions
    stats        Show age buckets for every cached session
    invalidate   Drop one user's cached session

Run with: python -m caretqa <command> [options]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# .env next to the project root wins over one in the CWD
_env_path = Path(__file__).resolve().parent.parent / '.env'
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()

from .auth import Authenticator, Credentials, SessionCache, resolve_credentials
from .run_config import RunConfig

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def parse_user_arg(value: str) -> Credentials:
    """``email:password`` → Credentials (the password may contain colons)."""
    username, sep, password = value.partition(':')
    if not sep or not username:
        raise argparse.ArgumentTypeError(
            f"expected EMAIL:PASSWORD, got {value!r}"
        )
    return Credentials(username=username, password=password)


def _build_cache(config: RunConfig) -> SessionCache:
    return SessionCache.from_config(config, Authenticator(config))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _login(config: RunConfig, users: List[Credentials], interactive: bool) -> int:
    if not users:
        creds = resolve_credentials(
            default_user=config.default_user,
            default_password=config.default_password,
            interactive=interactive,
        )
        if not creds.is_complete:
            logger.error("No credentials: pass --user or set DEFAULT_USER / DEFAULT_LEGAL_PASSWORD")
            return 2
        users = [creds]

    cache = _build_cache(config)
    sessions = await cache.warm_up(users, concurrency=config.warm_up_concurrency)
    identities = {c.username for c in users}
    failed = len(identities) - len(sessions)
    print(f"\n  Authenticated: {len(sessions)}/{len(identities)}")
    return 1 if failed else 0


def cmd_login(args, config: RunConfig) -> int:
    return asyncio.run(_login(config, args.user or [], interactive=sys.stdin.isatty()))


def cmd_stats(args, config: RunConfig) -> int:
    cache = _build_cache(config)
    cache.load_from_disk()
    stats = cache.stats()

    print("\n" + "=" * 60)
    print("  AUTH CACHE")
    print("=" * 60)
    print(f"  File:           {config.auth_cache_file}")
    print(f"  Total:          {stats.total}")
    print(f"  Valid:          {stats.valid}")
    print(f"  Expiring soon:  {stats.expiring_soon}")
    print(f"  Expired:        {stats.expired}")
    for entry in stats.users:
        print(f"    - {entry['identity']:<40} {entry['age_minutes']:>4} min  {entry['status']}")
    print("=" * 60)
    return 0


def cmd_invalidate(args, config: RunConfig) -> int:
    cache = _build_cache(config)
    cache.load_from_disk()
    if not cache.invalidate(args.email):
        print(f"  No cached session for {args.email}")
        return 1
    return 0 if cache.save_to_disk() else 1


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='caretqa',
        description='CARET Legal test session cache',
    )
    parser.add_argument('--url', help='Application login URL (overrides DEFAULT_URL)')
    parser.add_argument('--cache-dir', dest='cache_dir', help='Directory for the auth cache file')
    parser.add_argument('--max-age', dest='max_age', type=float,
                        help='Session freshness window in minutes')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', required=True)

    login = sub.add_parser('login', help='Log users in and persist their sessions')
    login.add_argument('--user', action='append', type=parse_user_arg, metavar='EMAIL:PASSWORD',
                       help='User to log in (repeatable); defaults to DEFAULT_USER')
    login.add_argument('--concurrency', type=int, help='Parallel logins (default: 3)')
    login.add_argument('--headed', action='store_true', help='Show the browser')
    login.set_defaults(func=cmd_login)

    stats = sub.add_parser('stats', help='Show cached session ages')
    stats.set_defaults(func=cmd_stats)

    invalidate = sub.add_parser('invalidate', help="Drop one user's cached session")
    invalidate.add_argument('email')
    invalidate.set_defaults(func=cmd_invalidate)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = RunConfig.from_cli_args(args)
    config.log_summary()
    return args.func(args, config)


if __name__ == '__main__':
    sys.exit(main())
