#!/usr/bin/env python3
"""Provision or revoke gateway API keys in the configured database.

Usage:
  python scripts/create_api_key.py --user-id <uuid> --name "Claude Desktop" \
      [--scope read:entries --scope write:entries] [--expires-days 90]
  python scripts/create_api_key.py --revoke <key_id>

The full token is printed once; only the SHA-256 of its secret is stored.
Reads DATABASE_URL and API_KEY_PREFIX from the environment like the gateway.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on the path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision or revoke gateway API keys")
    parser.add_argument("--user-id", help="Owner of the key")
    parser.add_argument("--name", default="API key", help="Label shown in key listings")
    parser.add_argument(
        "--scope",
        action="append",
        dest="scopes",
        help="Scope to grant (repeatable). Default: read:entries",
    )
    parser.add_argument("--expires-days", type=int, default=None, help="Expire the key after N days")
    parser.add_argument("--revoke", metavar="KEY_ID", help="Revoke an existing key instead")
    args = parser.parse_args()

    from gateway.core.config import settings
    from gateway.db.database import SessionLocal, init_db
    from gateway.db.stores import create_api_key, revoke_api_key

    init_db()
    db = SessionLocal()
    try:
        if args.revoke:
            if not revoke_api_key(db, args.revoke):
                print(f"ERROR: Key not found or already revoked: {args.revoke}")
                sys.exit(1)
            print(f"Revoked {args.revoke}")
            return

        if not args.user_id:
            parser.error("--user-id is required when creating a key")
        try:
            token, record = create_api_key(
                db,
                user_id=args.user_id,
                name=args.name,
                scopes=args.scopes,
                expires_in_days=args.expires_days,
                prefix=settings.api_key_prefix,
            )
        except ValueError as e:
            print(f"ERROR: {e}")
            sys.exit(1)
    finally:
        db.close()

    print(f"key_id:  {record.key_id}")
    print(f"scopes:  {', '.join(record.scopes)}")
    if record.expires_at:
        print(f"expires: {record.expires_at.isoformat()}")
    print()
    print("Token (shown once, store it securely):")
    print(f"  {token}")


if __name__ == "__main__":
    main()
