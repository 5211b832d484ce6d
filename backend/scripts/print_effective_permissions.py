#!/usr/bin/env python3
"""Print the role directory and the effective permission table from the document store."""
import asyncio
import sys

from rolegate.permissions.exceptions import DocumentStoreError
from rolegate.permissions.repository import load_override_documents, load_role_directory
from rolegate.permissions.role_map import DEFAULT_PERMISSIONS
from rolegate.permissions.service import build_effective_table, combine_override_documents, role_override_documents
from rolegate.storage.documents import SqlDocumentStore


async def main() -> int:
    store = SqlDocumentStore()
    try:
        directory = await load_role_directory(store)
        overrides = await load_override_documents(store)
    except DocumentStoreError as e:
        print('Document store not reachable:', e)
        return 1

    print(f"\nROLES (max per user: {directory.max_roles_per_user})")
    if not len(directory):
        print('  (no rows)')
    for role in directory:
        flags = ','.join(f for f, on in (('default', role.is_default), ('protected', role.is_protected)) if on)
        print(f"  {role.hierarchy_position:>4}  {role.id:<12} {role.name:<16} {flags}")

    table = build_effective_table(
        DEFAULT_PERMISSIONS,
        combine_override_documents(overrides, role_override_documents(directory)),
    )
    print('\nEFFECTIVE PERMISSIONS' + (' (compiled defaults)' if not overrides else ''))
    for key, roles in table.items():
        print(f"  {key:<28} {', '.join(roles) or '-'}")
    return 0


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
