from typing import Iterable, Mapping, Optional, Sequence, Union

from rolegate.core.logging import authz_logger
from .constants import permission_key
from .models import Role
from .roles import DEVELOPER_ROLE_ID
from .role_map import DEFAULT_PERMISSIONS

# permission key -> ordered role names (or role ids) granted it
EffectivePermissionTable = Mapping[str, tuple[str, ...]]
# role name -> {permission key: granted}
OverrideDocuments = Mapping[str, Mapping[str, bool]]


def build_effective_table(
    catalog: Mapping[str, Sequence[str]],
    override_documents: Optional[OverrideDocuments] = None,
) -> dict[str, tuple[str, ...]]:
    """
    Merge per-role override documents onto the catalog.

    `True` adds the role to a key it is missing from, `False` removes it.
    Keys outside the catalog are ignored. With no override documents the
    result equals the catalog. Inputs are never mutated.
    """
    table = {key: list(roles) for key, roles in catalog.items()}

    for role_name, overrides in (override_documents or {}).items():
        normalized = str(role_name).lower()
        for key, granted in overrides.items():
            allowed = table.get(key)
            if allowed is None:
                continue
            present = any(str(r).lower() == normalized for r in allowed)
            if granted is True and not present:
                allowed.append(normalized)
            elif granted is False and present:
                allowed[:] = [r for r in allowed if str(r).lower() != normalized]

    return {key: tuple(roles) for key, roles in table.items()}


def can(
    role_ids: Union[str, Iterable[str], None],
    permission,
    table: Optional[EffectivePermissionTable] = None,
) -> bool:
    """
    True iff ANY of `role_ids` is granted `permission` in `table`.

    Developer bypasses every check. Unknown keys resolve to False. A single
    role string is accepted for legacy call sites.
    """
    if not role_ids:
        return False
    if isinstance(role_ids, str):
        role_ids = [role_ids]
    ids = [str(r) for r in role_ids if r]
    if not ids:
        return False

    if DEVELOPER_ROLE_ID in ids:
        return True

    key = permission_key(permission)
    effective = DEFAULT_PERMISSIONS if table is None else table
    allowed = effective.get(key)
    if allowed is None:
        authz_logger.debug("unknown permission key", permission=key)
        return False

    lowered = {str(r).lower() for r in allowed}
    return any(rid in allowed or rid.lower() in lowered for rid in ids)


def role_override_documents(roles: Iterable[Role]) -> dict[str, dict[str, bool]]:
    """Override documents carried on Role entities, keyed by role id."""
    return {
        role.id.lower(): dict(role.permissions)
        for role in roles
        if role.permissions
    }


def combine_override_documents(
    collection_documents: OverrideDocuments,
    role_documents: OverrideDocuments,
) -> dict[str, dict[str, bool]]:
    """Role-embedded overrides win over collection documents for the same key."""
    combined = {str(name).lower(): dict(doc) for name, doc in collection_documents.items()}
    for name, doc in role_documents.items():
        combined.setdefault(str(name).lower(), {}).update(doc)
    return combined


class PermissionService:
    """Holds the current effective table for one session.

    `apply_overrides` is the only writer; each call swaps in a completely
    merged table.
    """

    def __init__(self, catalog: Mapping[str, Sequence[str]] = DEFAULT_PERMISSIONS):
        self._catalog = catalog
        self._table: EffectivePermissionTable = build_effective_table(catalog)
        self._using_defaults = True

    @property
    def catalog(self) -> Mapping[str, Sequence[str]]:
        return self._catalog

    @property
    def table(self) -> EffectivePermissionTable:
        return self._table

    @property
    def using_defaults(self) -> bool:
        return self._using_defaults

    def apply_overrides(self, override_documents: Optional[OverrideDocuments]) -> EffectivePermissionTable:
        table = build_effective_table(self._catalog, override_documents)
        self._table = table
        self._using_defaults = not override_documents
        return table

    def reset(self) -> None:
        self._table = build_effective_table(self._catalog)
        self._using_defaults = True

    def can(self, role_ids, permission) -> bool:
        return can(role_ids, permission, self._table)
