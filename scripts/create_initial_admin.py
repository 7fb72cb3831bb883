#!/usr/bin/env python3
"""Bootstrap the first admin account.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret123 python scripts/create_initial_admin.py
"""
import os
import sys

from dairyfarm.access import Role
from dairyfarm.db import SessionLocal
from dairyfarm.errors import ConflictError
from dairyfarm.security import IdentityProvider
from dairyfarm.services.accounts import provision_user
from dairyfarm.store import DocumentStore


def main():
    email = os.environ.get("ADMIN_EMAIL")
    password = os.environ.get("ADMIN_PASSWORD")
    if not email or not password:
        print("ADMIN_EMAIL and ADMIN_PASSWORD are required", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        user = provision_user(
            IdentityProvider(db),
            DocumentStore(db),
            email=email,
            password=password,
            first_name=os.environ.get("ADMIN_FIRST_NAME", "System"),
            last_name=os.environ.get("ADMIN_LAST_NAME", "Admin"),
            role=Role.admin,
        )
    except ConflictError:
        print(f"An account for {email} already exists", file=sys.stderr)
        return 1
    finally:
        db.close()
    print("Created admin:", user["id"], user["email"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
