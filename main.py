#!/usr/bin/env python3
"""
AuthGate -- credential-based authentication service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py sweep-sessions
  python main.py seed-roles
  python main.py revoke-sessions 550e8400-e29b-41d4-a716-446655440000

Environment variables (or .env):
  ENVIRONMENT    development (default) or anything else for production rules.
  SECRET_KEY     Required outside development. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Default: sqlite:///./authgate.db
"""

import argparse
import sys
from typing import Optional

from auth.db import Database
from auth.service import AuthService
from auth.store import RoleStore, SessionStore, UserStore
from auth.tokens import TokenSigner
from core.config import Settings, configure_logging, get_settings
from core.errors import AuthError


def _build_service(settings: Settings, db: Database) -> AuthService:
    return AuthService(
        users=UserStore(db.engine),
        sessions=SessionStore(db.engine, settings.secret_key),
        signer=TokenSigner(settings.secret_key, settings.jwt_algorithm),
        settings=settings,
        roles=RoleStore(db.engine),
    )


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _cmd_sweep(args: argparse.Namespace, settings: Settings) -> int:
    db = Database(settings.database_url)
    try:
        removed = _build_service(settings, db).sweep_expired_sessions()
    finally:
        db.close()
    print(f"Removed {removed} expired session(s).")
    return 0


def _cmd_seed_roles(args: argparse.Namespace, settings: Settings) -> int:
    db = Database(settings.database_url)
    try:
        created = RoleStore(db.engine).ensure_default_roles()
    finally:
        db.close()
    print(f"Created {created} role(s); defaults are in place.")
    return 0


def _cmd_revoke(args: argparse.Namespace, settings: Settings) -> int:
    db = Database(settings.database_url)
    try:
        removed = _build_service(settings, db).signout_everywhere(args.user_id)
    finally:
        db.close()
    print(f"Revoked {removed} session(s) for user {args.user_id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Credential-based authentication service and maintenance commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py sweep-sessions
  ENVIRONMENT=production SECRET_KEY=... python main.py serve --host 0.0.0.0
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API under uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    sweep = sub.add_parser("sweep-sessions", help="Delete every expired session")
    sweep.set_defaults(func=_cmd_sweep)

    seed = sub.add_parser("seed-roles", help="Create the default roles if missing")
    seed.set_defaults(func=_cmd_seed_roles)

    revoke = sub.add_parser("revoke-sessions", help="Sign a user out everywhere")
    revoke.add_argument("user_id", metavar="USER_ID", help="Id of the user whose sessions to delete")
    revoke.set_defaults(func=_cmd_revoke)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return args.func(args, settings)
    except AuthError as exc:
        print(f"  [!] {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
