#!/usr/bin/env python3
"""
Inventory service admin CLI -- database setup and user management.

The HTTP API never creates users; accounts come from here.

Usage:
  python main.py init-db
  python main.py seed
  python main.py create-user alice --role viewer
  python main.py --database-url postgresql://user:pw@host/inventario_db init-db

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the database (default: SQLite inventory.db).
  SECRET_KEY    Required unless DEBUG=true (see core/config.py).
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from api.models import LoginRequest
from api.validation import validate
from auth.models import User
from auth.permissions import Role
from auth.store import UserStore
from auth.tokens import hash_password
from inventory.models import Product
from inventory.store import ProductStore

# Demo accounts created by `seed`. Change these passwords outside local dev.
SEED_USERS = [
    ("admin", "admin123", Role.ADMIN),
    ("viewer", "viewer123", Role.VIEWER),
]

SEED_PRODUCTS = [
    Product(sku="LAP001", name="Laptop Dell Inspiron 15", qty=10, price=899.99),
    Product(sku="MON002", name='Monitor Samsung 24" Full HD', qty=25, price=199.99),
    Product(sku="TEC003", name="RGB Mechanical Keyboard", qty=15, price=89.99),
    Product(sku="MOU004", name="Wireless Gaming Mouse", qty=30, price=59.99),
    Product(sku="HEA005", name="Headset with Microphone", qty=20, price=79.99),
]


def _open_stores(database_url: Optional[str]) -> tuple[UserStore, ProductStore]:
    """Open both stores. Constructing a store creates its tables if missing."""
    return UserStore(db_url=database_url), ProductStore(db_url=database_url)


def cmd_init_db(args: argparse.Namespace) -> int:
    user_store, product_store = _open_stores(args.database_url)
    user_store.close()
    product_store.close()
    print("Database schema ready.")
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    """Create the demo users and sample products. Existing rows are skipped."""
    user_store, product_store = _open_stores(args.database_url)
    try:
        for username, password, role in SEED_USERS:
            if user_store.get_by_username(username) is not None:
                print(f"  user {username}: exists, skipped")
                continue
            user_store.create_user(User(username=username, role=role.value, hashed_password=hash_password(password)))
            print(f"  user {username} ({role.value}): created")

        for product in SEED_PRODUCTS:
            if product_store.get_product_by_sku(product.sku) is not None:
                print(f"  product {product.sku}: exists, skipped")
                continue
            product_store.create_product(product)
            print(f"  product {product.sku}: created")
    finally:
        user_store.close()
        product_store.close()

    print("\nDemo credentials:")
    for username, password, role in SEED_USERS:
        print(f"  {username} / {password}  ({role.value})")
    return 0


def _prompt_password() -> Optional[str]:
    password = getpass.getpass("Password: ")
    if getpass.getpass("Repeat password: ") != password:
        print("  [!] Passwords do not match.", file=sys.stderr)
        return None
    return password


def cmd_create_user(args: argparse.Namespace) -> int:
    """Create one user. The credentials must pass the same rules as login."""
    password = _prompt_password()
    if password is None:
        return 1

    credentials, errors = validate(LoginRequest, {"username": args.username, "password": password})
    if credentials is None:
        for err in errors:
            print(f"  [!] {err.field}: {err.message}", file=sys.stderr)
        return 1

    user_store = UserStore(db_url=args.database_url)
    try:
        user_store.create_user(
            User(username=credentials.username, role=args.role, hashed_password=hash_password(credentials.password))
        )
    except IntegrityError:
        print(f"  [!] User '{credentials.username}' already exists.", file=sys.stderr)
        return 1
    finally:
        user_store.close()

    print(f"User {credentials.username} ({args.role}) created.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Inventory service admin tasks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: DATABASE_URL or the SQLite file next to the project)",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    init_db = sub.add_parser("init-db", help="Create the database tables")
    init_db.set_defaults(func=cmd_init_db)

    seed = sub.add_parser("seed", help="Create demo users and sample products")
    seed.set_defaults(func=cmd_seed)

    create_user = sub.add_parser("create-user", help="Create a user (prompts for the password)")
    create_user.add_argument("username")
    create_user.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.VIEWER.value,
        help="Role for the new user (default: viewer)",
    )
    create_user.set_defaults(func=cmd_create_user)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
