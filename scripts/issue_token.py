#!/usr/bin/env python3
"""Issue a bearer token for an account, for local testing.

Signs with JWT_SECRET from the environment (or .env), exactly as the login
service of the host application would.

Usage:
    python scripts/issue_token.py <account_id>
    python scripts/issue_token.py <account_id> --expires-in 3600
    python scripts/issue_token.py <account_id> --not-before-in 60
"""

import argparse
import sys
import time
from pathlib import Path

# Make the backend package importable when run from the repository root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from accounts_gate.services.tokens import create_access_token  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue an Accounts Gate bearer token")
    parser.add_argument("account_id", help="Account id to place in the sub claim")
    parser.add_argument(
        "--expires-in",
        type=int,
        help="Lifetime in seconds (default: JWT_EXPIRE_MINUTES)",
    )
    parser.add_argument(
        "--not-before-in",
        type=int,
        help="Seconds from now until the token becomes active",
    )
    args = parser.parse_args()

    if args.expires_in is not None and args.expires_in <= 0:
        print("ERROR: --expires-in must be positive.")
        sys.exit(1)

    now = int(time.time())
    not_before = now + args.not_before_in if args.not_before_in is not None else None
    token = create_access_token(
        args.account_id,
        issued_at=now,
        expires_in=args.expires_in,
        not_before=not_before,
    )
    print(token)


if __name__ == "__main__":
    main()
