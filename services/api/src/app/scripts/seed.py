"""
Seed permissions, roles and the bootstrap admin account. Run from the api service:
  python -m app.scripts.seed [--create-schema] [--admin-email EMAIL --admin-username NAME --admin-password PW]
Admin credentials default to SEED_ADMIN_* settings; without a password no account is created.
"""

import argparse
import asyncio
import sys

from app.constants import ServiceName
from app.logging import configure_logging
from app.rbac.seed_data import DEFAULT_DATASET
from app.rbac.seeder import AdminAccount, RBACSeeder, SeedReport
from app.settings import get_settings
from shared.crypto import PasswordHasher
from shared.db.session import DatabaseManager


async def run(args: argparse.Namespace) -> SeedReport:
    settings = get_settings()
    db = DatabaseManager.from_url(args.database_url) if args.database_url else DatabaseManager.from_env()
    admin = AdminAccount(
        email=args.admin_email or settings.SEED_ADMIN_EMAIL,
        username=args.admin_username or settings.SEED_ADMIN_USERNAME,
        password=args.admin_password or settings.SEED_ADMIN_PASSWORD,
    )
    try:
        if args.create_schema:
            await db.create_schema()
        seeder = RBACSeeder(PasswordHasher(rounds=settings.BCRYPT_ROUNDS))
        async with db.session() as session:
            return await seeder.seed(DEFAULT_DATASET, session, admin=admin)
    finally:
        await db.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed RBAC permissions, roles and the admin account.")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables first (development)")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-username")
    parser.add_argument("--admin-password")
    args = parser.parse_args()

    if args.admin_password is not None and len(args.admin_password) < 8:
        print("Admin password must be at least 8 characters.", file=sys.stderr)
        return 1

    configure_logging(ServiceName.SEEDER, get_settings().LOG_LEVEL)
    report = asyncio.run(run(args))
    print(
        f"Seeded dataset {report.version}: "
        f"{len(report.permissions_created)} permissions created, "
        f"{len(report.roles_created)} roles created, "
        f"{len(report.roles_synced)} roles synced, "
        f"admin {'created' if report.admin_created else 'unchanged'}."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
