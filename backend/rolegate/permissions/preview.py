"""
Role preview ("view as") for users who can manage roles.

A preview substitutes the effective role set with one other role. It may
never point at a role with more authority than the actor's strongest
actual role. Every rule is evaluated against the actor's ACTUAL role ids.

States: disabled, enabled(role_id). A role id may linger while disabled;
it is never treated as active.
"""
import json
import math
from typing import Callable, Iterable, Optional

from rolegate.core.config import settings
from rolegate.core.logging import preview_logger
from rolegate.storage.session_storage import KeyValueStorage
from .constants import Permission
from .directory import RoleDirectory
from .exceptions import StorageError
from .identity import actual_role_ids
from .models import Principal, PreviewSnapshot, Role
from .roles import DEVELOPER_ROLE_ID, DEVELOPER_POSITION
from .service import EffectivePermissionTable, can


def top_position(role_ids: Iterable[str], directory: RoleDirectory) -> float:
    """Strongest (lowest) hierarchy position among `role_ids`; inf if none resolve."""
    positions = []
    for role_id in role_ids:
        if role_id == DEVELOPER_ROLE_ID:
            positions.append(DEVELOPER_POSITION)
            continue
        role = directory.get(role_id)
        positions.append(role.hierarchy_position if role is not None else math.inf)
    return min(positions, default=math.inf)


def is_preview_eligible(
    role_id: Optional[str],
    actual_ids: list[str],
    directory: RoleDirectory,
    table: EffectivePermissionTable,
) -> bool:
    """Non-escalation predicate for previewing `role_id`."""
    if not role_id:
        return False

    is_actual_developer = DEVELOPER_ROLE_ID in actual_ids
    if role_id == DEVELOPER_ROLE_ID and not is_actual_developer:
        return False

    if not can(actual_ids, Permission.ROLES_VIEW, table):
        return False

    role = directory.get(role_id)
    if role is None and role_id != DEVELOPER_ROLE_ID:
        return False

    preview_position = DEVELOPER_POSITION if role_id == DEVELOPER_ROLE_ID else role.hierarchy_position
    return preview_position >= top_position(actual_ids, directory)


def allowed_preview_roles(
    actual_ids: list[str],
    directory: RoleDirectory,
    table: EffectivePermissionTable,
) -> list[Role]:
    """Directory roles the actor may preview, strongest first."""
    return [r for r in directory if is_preview_eligible(r.id, actual_ids, directory, table)]


class RolePreviewEngine:
    """
    Holds the preview state of one session and persists it to session storage.

    Persistence starts only after `hydrate()`. Every state change is
    reported through `on_change` so the owner can revalidate.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: Optional[str] = None,
        on_change: Optional[Callable[[PreviewSnapshot], None]] = None,
    ):
        self.storage = storage
        self.storage_key = storage_key or settings.PREVIEW_STORAGE_KEY
        self.on_change = on_change
        self._enabled = False
        self._preview_role_id: Optional[str] = None
        self._hydrated = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def preview_role_id(self) -> Optional[str]:
        return self._preview_role_id

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    @property
    def snapshot(self) -> PreviewSnapshot:
        return PreviewSnapshot(enabled=self._enabled, preview_role_id=self._preview_role_id)

    # ---------------------- persistence ----------------------

    def hydrate(self) -> PreviewSnapshot:
        """Read the stored snapshot back. Unreadable snapshots are purged."""
        try:
            raw = self.storage.get_item(self.storage_key)
            if raw:
                parsed = json.loads(raw)
                if not isinstance(parsed, dict):
                    raise ValueError("role preview snapshot is not an object")
                stored_role_id = parsed.get("previewRoleId")
                if not isinstance(stored_role_id, str) or not stored_role_id:
                    stored_role_id = None
                self._preview_role_id = stored_role_id
                self._enabled = parsed.get("enabled") is True and stored_role_id is not None
        except (ValueError, StorageError) as e:
            preview_logger.error("failed to read role preview snapshot", error=e)
            self._enabled = False
            self._preview_role_id = None
            self._remove_snapshot()
        finally:
            self._hydrated = True
        return self.snapshot

    def _persist(self) -> None:
        if not self._hydrated:
            return
        snapshot = self.snapshot
        try:
            if snapshot.is_empty:
                self.storage.remove_item(self.storage_key)
            else:
                self.storage.set_item(self.storage_key, json.dumps(snapshot.to_storage()))
        except StorageError as e:
            preview_logger.error("failed to persist role preview snapshot", error=e)

    def _remove_snapshot(self) -> None:
        try:
            self.storage.remove_item(self.storage_key)
        except StorageError as e:
            preview_logger.error("failed to purge role preview snapshot", error=e)

    def _set_state(self, enabled: bool, preview_role_id: Optional[str]) -> None:
        if enabled and not preview_role_id:
            enabled = False
        if enabled == self._enabled and preview_role_id == self._preview_role_id:
            return
        self._enabled = enabled
        self._preview_role_id = preview_role_id
        self._persist()
        if self.on_change is not None:
            self.on_change(self.snapshot)

    # ---------------------- transitions ----------------------

    def start(
        self,
        role_id: str,
        principal: Optional[Principal],
        directory: RoleDirectory,
        table: EffectivePermissionTable,
    ) -> bool:
        """Enable preview of `role_id`. Ineligible requests leave state unchanged."""
        if not self._hydrated:
            preview_logger.warning("preview start before hydration ignored", role_id=role_id)
            return False
        if principal is None or not directory.loaded:
            preview_logger.info("preview refused", role_id=role_id, reason="not ready")
            return False
        if not is_preview_eligible(role_id, actual_role_ids(principal), directory, table):
            preview_logger.info("preview refused", role_id=role_id, principal_id=principal.id)
            return False
        self._set_state(True, role_id)
        preview_logger.info("preview started", role_id=role_id, principal_id=principal.id)
        return True

    def stop(self) -> None:
        """Disable preview. The last role id is kept but never active."""
        self._set_state(False, self._preview_role_id)

    def set_preview_role_id(self, role_id: Optional[str]) -> None:
        """Select a role without enabling; None also disables.

        Selecting a different role while enabled disables the preview, since
        only `start` checks eligibility.
        """
        if not role_id:
            self._set_state(False, None)
        else:
            self._set_state(self._enabled and role_id == self._preview_role_id, role_id)

    def clear(self) -> None:
        self._set_state(False, None)

    def revalidate(
        self,
        principal: Optional[Principal],
        directory: RoleDirectory,
        table: EffectivePermissionTable,
        data_ready: bool = True,
    ) -> bool:
        """
        Re-check the held preview against current inputs.

        Returns True if the preview was cleared. Skipped before hydration;
        eligibility checks wait until the directory has loaded and the
        owner reports `data_ready` (the table includes every override).
        """
        if not self._hydrated:
            return False

        if principal is None:
            if self._enabled or self._preview_role_id:
                self._clear_invalid("no principal")
                return True
            return False

        actual_ids = actual_role_ids(principal)
        if self._preview_role_id == DEVELOPER_ROLE_ID and DEVELOPER_ROLE_ID not in actual_ids:
            self._clear_invalid("developer preview without developer role")
            return True

        if not self._enabled:
            return False

        if not directory.loaded or not data_ready:
            return False

        if not is_preview_eligible(self._preview_role_id, actual_ids, directory, table):
            self._clear_invalid("no longer eligible")
            return True

        return False

    def _clear_invalid(self, reason: str) -> None:
        preview_logger.info("preview cleared", role_id=self._preview_role_id, reason=reason)
        self._set_state(False, None)
