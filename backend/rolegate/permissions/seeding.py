"""
Development seeder for the roles and role permission override collections.
DEV-ONLY: writes the compiled defaults into the document store so that
overrides can be edited from a known starting point.
"""
from rolegate.core.config import settings
from rolegate.core.logging import store_logger
from rolegate.storage.documents import DocumentStore
from .models import Role
from .repository import ROLES_SETTINGS_KEY, role_to_document
from .role_map import DEFAULT_PERMISSIONS, STAFF_PERMISSIONS
from .roles import DEVELOPER_ROLE_ID, STAFF_ROLE_ID, RoleName, ROLE_LEVELS

STAFF_POSITION = 100


def default_roles() -> list[Role]:
    """Developer, the catalog roles in level order, and the default Staff role."""
    roles = [
        Role(
            id=DEVELOPER_ROLE_ID,
            name="Developer",
            color="#ef4444",
            position=0,
            is_protected=True,
        ),
    ]
    for role_name, level in ROLE_LEVELS.items():
        roles.append(Role(id=role_name.value, name=role_name.value.capitalize(), position=level * 10))
    roles.append(
        Role(
            id=STAFF_ROLE_ID,
            name="Staff",
            color="#3b82f6",
            position=STAFF_POSITION,
            is_default=True,
            permissions=dict(STAFF_PERMISSIONS),
        )
    )
    return roles


def catalog_override_documents() -> dict[str, dict[str, bool]]:
    """One document per catalog role listing every key it is granted."""
    documents: dict[str, dict[str, bool]] = {role.value: {} for role in RoleName}
    for key, allowed in DEFAULT_PERMISSIONS.items():
        for role_name in allowed:
            documents.setdefault(role_name.lower(), {})[key] = True
    return documents


async def seed_roles(store: DocumentStore) -> dict:
    """Create missing roles and the roles settings document. Idempotent."""
    stats = {"roles_created": 0, "skipped": 0, "settings_created": False}

    for role in default_roles():
        existing = await store.get_document(settings.ROLES_COLLECTION, role.id)
        if existing is not None:
            stats["skipped"] += 1
            continue
        await store.set_document(settings.ROLES_COLLECTION, role.id, role_to_document(role))
        stats["roles_created"] += 1
        store_logger.info(f"[Seeder] Created role: {role.id} (position={role.position})")

    existing_settings = await store.get_document(settings.SETTINGS_COLLECTION, ROLES_SETTINGS_KEY)
    if existing_settings is None:
        await store.set_document(
            settings.SETTINGS_COLLECTION,
            ROLES_SETTINGS_KEY,
            {"maxRolesPerUser": settings.DEFAULT_MAX_ROLES_PER_USER},
        )
        stats["settings_created"] = True

    return stats


async def seed_override_documents(store: DocumentStore) -> int:
    """Replace each catalog role's override document with the compiled defaults."""
    documents = catalog_override_documents()
    for role_name, grants in documents.items():
        await store.set_document(settings.OVERRIDES_COLLECTION, role_name, grants, merge=False)
    store_logger.info(f"[Seeder] Initialized {len(documents)} override documents from defaults")
    return len(documents)


async def run_seeder(store: DocumentStore) -> None:
    """
    Run the seeder if APP_ENV=development.
    Called from startup when SEED_ON_STARTUP is set.
    """
    if settings.APP_ENV != "development":
        store_logger.info(f"[Seeder] Skipping - APP_ENV={settings.APP_ENV} (not development)")
        return

    stats = await seed_roles(store)
    documents = await seed_override_documents(store)
    store_logger.info(
        f"[Seeder] Complete: "
        f"{stats['roles_created']} roles created, "
        f"{stats['skipped']} skipped (existing), "
        f"{documents} override documents written"
    )
