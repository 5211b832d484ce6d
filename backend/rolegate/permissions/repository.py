"""
Document-store reads for the authorization core.

Loaders raise DocumentStoreError on an unavailable source; the session
decides how to fall back.
"""
import math
from typing import Any, Dict

from pydantic import ValidationError

from rolegate.core.config import settings
from rolegate.core.logging import log_operation, store_logger
from rolegate.storage.documents import Document, DocumentStore
from .directory import RoleDirectory
from .models import Role, DEFAULT_ROLE_COLOR, UNRANKED_POSITION

ROLES_SETTINGS_KEY = "roles"


def role_from_document(doc: Document) -> Role:
    data = doc.data
    position = data.get("position")
    # bool is an int subclass; a stored true/false is not a position
    if not isinstance(position, (int, float)) or isinstance(position, bool) or not math.isfinite(position):
        position = UNRANKED_POSITION
    permissions = data.get("permissions") or {}
    if not isinstance(permissions, dict):
        permissions = {}
    name = data.get("name")
    color = data.get("color")
    return Role(
        id=doc.key,
        name=name if isinstance(name, str) and name else doc.key,
        color=color if isinstance(color, str) and color else DEFAULT_ROLE_COLOR,
        position=int(position),
        is_default=data.get("isDefault") is True,
        is_protected=data.get("isProtected") is True,
        permissions={k: v for k, v in permissions.items() if isinstance(v, bool)},
    )


def role_to_document(role: Role) -> Dict[str, Any]:
    return {
        "name": role.name,
        "color": role.color,
        "position": role.position,
        "isDefault": role.is_default,
        "isProtected": role.is_protected,
        "permissions": dict(role.permissions),
    }


@log_operation("load_roles", store_logger)
async def load_roles(store: DocumentStore) -> list[Role]:
    docs = await store.list_documents(settings.ROLES_COLLECTION)
    if not docs:
        store_logger.warning("no roles found in document store")
    roles = []
    for doc in docs:
        try:
            roles.append(role_from_document(doc))
        except ValidationError as e:
            store_logger.warning("skipping malformed role document", role_id=doc.key, error=str(e))
    roles.sort(key=lambda r: r.position)
    return roles


@log_operation("load_roles_settings", store_logger)
async def load_max_roles_per_user(store: DocumentStore) -> int:
    doc = await store.get_document(settings.SETTINGS_COLLECTION, ROLES_SETTINGS_KEY)
    if doc is None:
        return settings.DEFAULT_MAX_ROLES_PER_USER
    value = doc.data.get("maxRolesPerUser")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return settings.DEFAULT_MAX_ROLES_PER_USER


async def load_role_directory(store: DocumentStore) -> RoleDirectory:
    roles = await load_roles(store)
    max_roles = await load_max_roles_per_user(store)
    return RoleDirectory(roles, loaded=True, max_roles_per_user=max_roles)


@log_operation("load_override_documents", store_logger)
async def load_override_documents(store: DocumentStore) -> dict[str, dict[str, bool]]:
    """Override documents keyed by lowercase role name; non-boolean values dropped."""
    docs = await store.list_documents(settings.OVERRIDES_COLLECTION)
    overrides: dict[str, dict[str, bool]] = {}
    for doc in docs:
        grants = {k: v for k, v in doc.data.items() if isinstance(v, bool)}
        if grants:
            overrides[doc.key.lower()] = grants
    return overrides
