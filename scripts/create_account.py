#!/usr/bin/env python3
"""
Register an account (user profile + login) directly against the configured database.

Usage:
  python scripts/create_account.py --username jdoe --first-name Jane --last-name Doe \
      --address1 "1 Main St" --zip 10001 --email jane@example.com [--address2 "Apt 2"]
"""
from __future__ import annotations

import argparse
import getpass
import sys
from typing import Optional, Sequence

from carte.core.errors import AccountError, StoreError
from carte.core.log import logger, setup_logging
from carte.db.create_tables import create_all
from carte.domain.accounts import NewAccountRequest
from carte.services.account_service import AccountService


def main(argv: Optional[Sequence[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Register a Carte account")
    ap.add_argument("--username", required=True, help="Login name (must be unique)")
    ap.add_argument("--first-name", required=True)
    ap.add_argument("--last-name", required=True)
    ap.add_argument("--address1", required=True)
    ap.add_argument("--address2", help="Second address line (optional)")
    ap.add_argument("--zip", required=True, help="Postal code")
    ap.add_argument("--email", required=True)
    ap.add_argument("--init-db", action="store_true", help="Create missing tables first")
    args = ap.parse_args(argv)

    setup_logging()
    if args.init_db:
        create_all()

    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")

    request = NewAccountRequest(
        first_name=args.first_name,
        last_name=args.last_name,
        address1=args.address1,
        address2=args.address2,
        zip_code=args.zip,
        email=args.email,
        username=args.username,
        password=password,
        password_confirm=confirm,
    )
    try:
        account = AccountService().register(request)
    except StoreError as exc:
        logger.error("Account database unavailable: {}", exc.message)
        raise SystemExit(f"Storage failure ({exc.kind}): {exc.message}")
    except AccountError as exc:
        logger.warning("Registration rejected: {}", exc.message)
        raise SystemExit(f"Error ({exc.kind}): {exc.message}")

    print("OK: account created")
    print(f"  ID: {account.id}")
    print(f"  Username: {account.username}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
