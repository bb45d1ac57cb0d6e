# src/lendgate/scripts/issue_token.py
"""
Operator tool for minting credentials.

Subcommands:
1. ``access``: print a bearer JWT for an existing account
2. ``step-up``: print a single-use step-up token for one admin operation
3. ``bootstrap-admin``: create the first admin account when none exists
"""

from __future__ import annotations

import argparse
import getpass
import sys

from sqlalchemy.orm import Session

from lendgate.core.errors import ValidationError
from lendgate.core.security import create_access_token
from lendgate.db.session import SessionLocal
from lendgate.models import UserAccount
from lendgate.models.user import ADMIN_ROLES
from lendgate.schemas.requests import CreateUserRequest
from lendgate.services.mfa import STEP_UP_OPERATIONS, issue_step_up_token
from lendgate.services.users import create_user, get_user, get_user_by_email


def _resolve_user(db: Session, ident: str) -> UserAccount:
    user = get_user(db, ident) or get_user_by_email(db, ident.strip().lower())
    if user is None:
        raise SystemExit(f"No account matches {ident!r}")
    return user


def bootstrap_admin(db: Session, email: str, password: str, role: str = "super_admin") -> UserAccount:
    """Create an admin account, validating it like any other creation."""
    if role not in ADMIN_ROLES:
        raise SystemExit(f"Role must be one of {sorted(ADMIN_ROLES)}")
    data = CreateUserRequest.from_body({"email": email, "password": password, "role": role})
    return create_user(db, data)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Mint Lendgate credentials")
    sub = parser.add_subparsers(dest="command", required=True)

    access = sub.add_parser("access", help="Print an access token")
    access.add_argument("user", help="Account id or email")

    step_up = sub.add_parser("step-up", help="Print a single-use step-up token")
    step_up.add_argument("user", help="Account id or email")
    step_up.add_argument("operation", choices=sorted(STEP_UP_OPERATIONS))
    step_up.add_argument("--ttl", type=int, default=None, help="Lifetime in seconds")

    bootstrap = sub.add_parser("bootstrap-admin", help="Create an admin account")
    bootstrap.add_argument("email")
    bootstrap.add_argument("--role", default="super_admin", choices=sorted(ADMIN_ROLES))

    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        if args.command == "access":
            user = _resolve_user(db, args.user)
            print(create_access_token(user.id))
        elif args.command == "step-up":
            user = _resolve_user(db, args.user)
            print(issue_step_up_token(db, user.id, args.operation, ttl_seconds=args.ttl))
        else:
            password = getpass.getpass("Password: ")
            try:
                user = bootstrap_admin(db, args.email, password, args.role)
            except ValidationError as exc:
                for error in exc.errors:
                    print(f"[issue_token] {error}", file=sys.stderr)
                return 1
            print(user.id)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
