"""
Idempotent role seeder for local development.

Run manually from the backend directory:

  python scripts/seed_roles.py [--overrides]

This script:
 - Creates the document table if missing
 - Creates missing roles (Developer, catalog roles, Staff) and the roles settings document
 - With --overrides, rewrites each catalog role's override document from the compiled defaults

Safety: existing roles are never modified; prints summary counts.
"""
import argparse
import asyncio

from rolegate.db.database import create_tables
from rolegate.permissions.seeding import seed_override_documents, seed_roles
from rolegate.storage.documents import SqlDocumentStore


async def main(with_overrides: bool):
    await create_tables()
    store = SqlDocumentStore()
    stats = await seed_roles(store)
    print(f"roles created: {stats['roles_created']}, skipped: {stats['skipped']}")
    print(f"settings document created: {stats['settings_created']}")
    if with_overrides:
        count = await seed_override_documents(store)
        print(f"override documents written: {count}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Seed default roles into the document store")
    parser.add_argument('--overrides', action='store_true', help="also reset override documents to the defaults")
    args = parser.parse_args()
    asyncio.run(main(args.overrides))
