"""Storefront ordering management CLI.

Usage:
    python src/manage.py setup-db        # Create all tables
    python src/manage.py drop-db         # Drop all tables
    python src/manage.py seed-coupons    # Define SAVE10, SAVE20 and FLAT15 if missing
    python src/manage.py cleanup-carts   # Delete empty carts idle for 30 days
"""

import argparse
import sys


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    domain = _domain()
    print("Creating ordering database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    domain = _domain()
    print("Dropping ordering database schema...")
    drop_db(domain)
    print("Done.")


def seed_coupons():
    from ordering.coupon.management import seed_default_coupons

    domain = _domain()
    with domain.domain_context():
        seeded = seed_default_coupons()
    print(f"Seeded coupons: {', '.join(seeded) if seeded else 'none (already defined)'}")


def cleanup_carts():
    from ordering.cart.management import cleanup_stale_carts

    domain = _domain()
    with domain.domain_context():
        deleted = cleanup_stale_carts()
    print(f"Deleted {deleted} stale cart(s).")


COMMANDS = {
    "setup-db": (setup_database, "Create all database tables"),
    "drop-db": (drop_database, "Drop all database tables"),
    "seed-coupons": (seed_coupons, "Define the default coupons"),
    "cleanup-carts": (cleanup_carts, "Delete empty carts untouched for 30 days"),
}


def main():
    from ordering.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Storefront ordering management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, help_text) in COMMANDS.items():
        subparsers.add_parser(name, help=help_text)

    args = parser.parse_args()
    if args.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    configure_logging()
    COMMANDS[args.command][0]()


if __name__ == "__main__":
    main()
