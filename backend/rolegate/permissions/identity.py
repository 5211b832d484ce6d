import json
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from rolegate.core.config import settings
from rolegate.core.logging import identity_logger
from rolegate.storage.session_storage import KeyValueStorage
from .exceptions import StorageError
from .models import Principal, PreviewSnapshot


def actual_role_ids(principal: Optional[Principal]) -> list[str]:
    """Role ids genuinely assigned to `principal`.

    The multi-role list wins when non-empty, otherwise the legacy single
    role is wrapped, otherwise nothing.
    """
    if principal is None:
        return []
    if principal.roles:
        return list(principal.roles)
    if principal.role:
        return [principal.role]
    return []


def effective_role_ids(principal: Optional[Principal], preview: Optional[PreviewSnapshot]) -> list[str]:
    """The only role set authorization call sites may pass to `can`."""
    if preview is not None and preview.enabled and preview.preview_role_id:
        return [preview.preview_role_id]
    return actual_role_ids(principal)


class IdentityStore:
    """
    Persists the signed-in principal in one of two tiers.

    - remember=True  -> durable storage
    - remember=False -> session storage (expires with the session)

    Restore prefers the session tier. Corrupt records are purged.
    """

    def __init__(
        self,
        durable: KeyValueStorage,
        session: KeyValueStorage,
        key: Optional[str] = None,
        sign_out_hook: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.durable = durable
        self.session = session
        self.key = key or settings.AUTH_STORAGE_KEY
        self.sign_out_hook = sign_out_hook

    def restore(self) -> Optional[Principal]:
        for storage in (self.session, self.durable):
            principal = self._read(storage)
            if principal is not None:
                return principal
        return None

    def persist(self, principal: Principal, remember: bool = True) -> None:
        target, other = (self.durable, self.session) if remember else (self.session, self.durable)
        try:
            target.set_item(self.key, principal.model_dump_json())
            other.remove_item(self.key)
        except StorageError as e:
            identity_logger.error("failed to persist principal", error=e, principal_id=principal.id)

    def clear(self) -> None:
        for storage in (self.session, self.durable):
            try:
                storage.remove_item(self.key)
            except StorageError as e:
                identity_logger.error("failed to clear persisted principal", error=e)

    async def sign_out(self) -> None:
        """Fire the identity layer's sign-out. Failures are logged only."""
        if self.sign_out_hook is None:
            return
        try:
            await self.sign_out_hook()
        except Exception as e:
            identity_logger.error("sign out failed", error=e)

    def _read(self, storage: KeyValueStorage) -> Optional[Principal]:
        try:
            raw = storage.get_item(self.key)
        except StorageError as e:
            identity_logger.error("failed to read persisted principal", error=e)
            return None
        if not raw:
            return None
        try:
            return Principal.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            identity_logger.warning("discarding corrupt persisted principal", error=str(e))
            try:
                storage.remove_item(self.key)
            except StorageError as purge_error:
                identity_logger.error("failed to purge corrupt principal", error=purge_error)
            return None
