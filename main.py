#!/usr/bin/env python3
"""
Assets API -- administrative command line.

Usage:
  python main.py create-admin --username admin --email admin@test.com --password secret1
  python main.py totp-code --secret JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP

The API itself is served by uvicorn:
  uvicorn asgi:app --reload

Environment variables (or .env):
  DATABASE_URL  SQLAlchemy URL of the store (default: assets.db next to this file)
  DEBUG=true    Auto-generate JWT secrets for local use
"""

import argparse
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth import totp
from auth.models import Role
from auth.store import UserStore
from core.config import get_settings
from core.errors import ValidationError


def _create_admin(args: argparse.Namespace) -> int:
    store = UserStore(get_settings().database_url)
    try:
        user_id = store.create_user(args.username, args.email, args.password, role=Role.admin)
    except ValidationError as e:
        print(f"  [!] {e.message}")
        return 1
    except IntegrityError:
        print(f"  [!] A user named '{args.username}' or with email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"Admin user created (id={user_id}, email={args.email}).")
    return 0


def _totp_code(args: argparse.Namespace) -> int:
    try:
        print(totp.current_code(args.secret))
    except (TypeError, ValueError):
        print("  [!] Secret is not valid base32.")
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="assets-api",
        description="Administrative commands for the Assets API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --username admin --email admin@test.com --password secret1
  python main.py totp-code --secret JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP
        """,
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    create_admin = commands.add_parser("create-admin", help="Create an admin user in the configured database")
    create_admin.add_argument("--username", required=True, help="Unique username")
    create_admin.add_argument("--email", required=True, help="Login email (exact match at login)")
    create_admin.add_argument("--password", required=True, help="At least 6 characters")
    create_admin.set_defaults(handler=_create_admin)

    totp_code = commands.add_parser("totp-code", help="Print the current 6-digit code for a base32 secret")
    totp_code.add_argument("--secret", required=True, metavar="BASE32", help="The TOTP secret")
    totp_code.set_defaults(handler=_totp_code)

    args = parser.parse_args(argv)
    if not getattr(args, "handler", None):
        parser.print_help()
        return 2
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
