"""
Name: User Bootstrap Script

Responsibilities:
  - Create a user directly in PostgreSQL (idempotent)
  - Hash the password with Argon2 when one is given
  - Without a password the user is created in password-setup state

Notes:
  - Usage: python scripts/create_user.py --email a@b.c --name "Ana" --role ADMIN
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from uuid import uuid4

import psycopg

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from postflow.identity.passwords import hash_password  # noqa: E402
from postflow.identity.users import UserRole, normalize_email  # noqa: E402


def _require_database_url() -> str:
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise SystemExit("DATABASE_URL is required to create a user.")
    return db_url


def _prompt_password() -> str:
    password = getpass.getpass("Password (empty = user sets it on first login): ")
    if not password:
        return ""
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        raise SystemExit("Passwords do not match.")
    return password


def _parse_args() -> argparse.Namespace:
    argv = sys.argv[1:]
    if argv and argv[0] == "--":
        argv = argv[1:]
    parser = argparse.ArgumentParser(description="Create a user (idempotent).")
    parser.add_argument("--email", required=True, help="User email (normalized)")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument(
        "--role",
        default=UserRole.USER.value,
        choices=[role.value for role in UserRole],
        help="User role (default: USER)",
    )
    parser.add_argument(
        "--password",
        help="Initial password (omit to be prompted; empty leaves setup pending)",
    )
    parser.add_argument(
        "--no-prompt",
        action="store_true",
        help="Never prompt; without --password the user must set one on first login",
    )
    return parser.parse_args(argv)


def _maybe_create_user(
    db_url: str, *, email: str, name: str, role: str, password: str
) -> None:
    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT id, role FROM users WHERE email = %s", (email,))
            row = cur.fetchone()
            if row:
                print(f"User already exists: id={row[0]} email={email} role={row[1]}")
                return

            user_id = uuid4()
            password_hash = hash_password(password) if password else None
            cur.execute(
                """
                INSERT INTO users (id, email, name, role, password_hash, password_reset)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (user_id, email, name, role, password_hash, password_hash is None),
            )
            conn.commit()
            state = "active" if password_hash else "pending password setup"
            print(f"Created user: id={user_id} email={email} role={role} ({state})")


def main() -> None:
    args = _parse_args()
    db_url = _require_database_url()
    email = normalize_email(args.email)
    if not email:
        raise SystemExit("Email is required.")
    name = args.name.strip()
    if not name:
        raise SystemExit("Name is required.")

    password = args.password
    if password is None:
        password = "" if args.no_prompt else _prompt_password()

    _maybe_create_user(db_url, email=email, name=name, role=args.role, password=password)


if __name__ == "__main__":
    main()
