"""
Authorization session: one principal's catalog table, role directory,
identity and preview state, created at login and destroyed at logout.

Data flow:
    identity -> actual role ids -> preview engine -> effective role ids
    -> can(effective role ids, key) against the effective table

Each piece of shared state has exactly one writer:
    - effective table: `_rebuild_table` (via PermissionService.apply_overrides)
    - role directory:  `refresh_roles`
    - preview state:   RolePreviewEngine transitions
"""
import asyncio
import time
import uuid
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from rolegate.core.config import settings
from rolegate.core.logging import authz_logger
from rolegate.storage.documents import DocumentStore
from rolegate.storage.session_storage import KeyValueStorage
from .constants import PAGE_VIEW_PERMISSIONS
from .directory import RoleDirectory
from .events import EventDispatcher, Listener, SessionEvent
from .exceptions import DocumentStoreError
from .identity import IdentityStore, actual_role_ids, effective_role_ids
from .models import Principal, PreviewSnapshot, Role
from .preview import RolePreviewEngine, allowed_preview_roles
from .repository import load_override_documents, load_role_directory
from .role_map import DEFAULT_PERMISSIONS
from .service import (
    EffectivePermissionTable,
    PermissionService,
    combine_override_documents,
    role_override_documents,
)


class AuthorizationSession:

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityStore,
        preview_storage: KeyValueStorage,
        session_id: Optional[str] = None,
        catalog: Mapping[str, Sequence[str]] = DEFAULT_PERMISSIONS,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self._store = store
        self._identity = identity
        self._permissions = PermissionService(catalog)
        self._directory = RoleDirectory.pending()
        self._override_documents: dict[str, dict[str, bool]] = {}
        self._overrides_loaded = False
        self._principal: Optional[Principal] = None
        # Bumped on login/logout/close; async results from an older generation are dropped
        self._generation = 0
        self._closed = False
        self._events = EventDispatcher()
        self._events.subscribe(self._on_event)
        self._preview = RolePreviewEngine(
            preview_storage,
            on_change=lambda _snapshot: self._events.notify(SessionEvent.PREVIEW_CHANGED),
        )

    # ---------------------- lifecycle ----------------------

    def open(self) -> "AuthorizationSession":
        """Restore persisted identity and preview state."""
        self._principal = self._identity.restore()
        self._preview.hydrate()
        self._events.notify(SessionEvent.PRINCIPAL_CHANGED)
        return self

    def login(self, principal: Principal, remember: bool = True) -> None:
        if self._closed:
            raise RuntimeError("authorization session is closed")
        self._generation += 1
        self._reset_remote_data()
        self._principal = principal
        self._identity.persist(principal, remember)
        authz_logger.info("principal signed in", principal_id=principal.id, remember=remember)
        self._events.notify(SessionEvent.PRINCIPAL_CHANGED)

    async def logout(self) -> None:
        principal_id = self._principal.id if self._principal else None
        self._generation += 1
        self._principal = None
        self._identity.clear()
        self._preview.clear()
        self._events.notify(SessionEvent.PRINCIPAL_CHANGED)
        await self._identity.sign_out()
        authz_logger.info("principal signed out", principal_id=principal_id)
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._principal = None
        self._reset_remote_data()
        self._events.notify(SessionEvent.CLOSED)

    def _reset_remote_data(self) -> None:
        self._directory = RoleDirectory.pending()
        self._override_documents = {}
        self._overrides_loaded = False
        self._permissions.reset()

    @property
    def closed(self) -> bool:
        return self._closed

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    # ---------------------- remote data ----------------------

    async def bootstrap(self) -> None:
        """Fetch override documents and the role directory concurrently."""
        await asyncio.gather(self.refresh_overrides(), self.refresh_roles())

    async def refresh_overrides(self) -> bool:
        """Reload override documents. Returns False if the result was stale."""
        generation = self._generation
        try:
            documents = await load_override_documents(self._store)
        except DocumentStoreError as e:
            authz_logger.warning("override documents unavailable, using compiled defaults", error=str(e))
            documents = {}
        if not self._is_current(generation):
            authz_logger.info("discarding stale override documents", session_id=self.session_id)
            return False
        self._override_documents = documents
        self._overrides_loaded = True
        self._rebuild_table()
        self._events.notify(SessionEvent.OVERRIDES_LOADED)
        return True

    async def refresh_roles(self) -> bool:
        """Reload the role directory. Returns False if the result was stale."""
        generation = self._generation
        try:
            directory = await load_role_directory(self._store)
        except DocumentStoreError as e:
            authz_logger.warning("role directory unavailable, using empty directory", error=str(e))
            directory = RoleDirectory(loaded=True)
        if not self._is_current(generation):
            authz_logger.info("discarding stale role directory", session_id=self.session_id)
            return False
        self._directory = directory
        self._rebuild_table()
        self._events.notify(SessionEvent.ROLES_LOADED)
        return True

    def _rebuild_table(self) -> None:
        self._permissions.apply_overrides(
            combine_override_documents(
                self._override_documents,
                role_override_documents(self._directory),
            )
        )

    # ---------------------- revalidation ----------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    def _on_event(self, event: SessionEvent) -> None:
        if event is SessionEvent.CLOSED:
            return
        self.revalidate()

    def revalidate(self) -> bool:
        """Re-check the preview against current identity, directory and table."""
        return self._preview.revalidate(
            self._principal,
            self._directory,
            self._permissions.table,
            data_ready=self.ready,
        )

    # ---------------------- queries ----------------------

    @property
    def ready(self) -> bool:
        """Both the role directory and the override documents have loaded."""
        return self._directory.loaded and self._overrides_loaded

    @property
    def principal(self) -> Optional[Principal]:
        return self._principal

    @property
    def directory(self) -> RoleDirectory:
        return self._directory

    @property
    def table(self) -> EffectivePermissionTable:
        return self._permissions.table

    @property
    def using_defaults(self) -> bool:
        return self._permissions.using_defaults

    @property
    def preview(self) -> PreviewSnapshot:
        return self._preview.snapshot

    def actual_role_ids(self) -> list[str]:
        """For preview eligibility only; never for authorization decisions."""
        return actual_role_ids(self._principal)

    def effective_role_ids(self) -> list[str]:
        # A hydrated preview is not trusted until remote data has loaded and revalidated it
        if not self.ready:
            return actual_role_ids(self._principal)
        return effective_role_ids(self._principal, self._preview.snapshot)

    def can(self, permission) -> bool:
        return self._permissions.can(self.effective_role_ids(), permission)

    def allowed_pages(self) -> list[dict]:
        return [
            {"key": key, "label": label, "allowed": self.can(key)}
            for key, label in PAGE_VIEW_PERMISSIONS
        ]

    def preview_options(self) -> list[Role]:
        if self._principal is None or not self.ready:
            return []
        return allowed_preview_roles(self.actual_role_ids(), self._directory, self._permissions.table)

    # ---------------------- preview transitions ----------------------

    def start_preview(self, role_id: str) -> bool:
        if not self.ready:
            authz_logger.info("preview refused before remote data loaded", role_id=role_id)
            return False
        return self._preview.start(role_id, self._principal, self._directory, self._permissions.table)

    def stop_preview(self) -> None:
        self._preview.stop()

    def set_preview_role_id(self, role_id: Optional[str]) -> None:
        self._preview.set_preview_role_id(role_id)


StorageFactory = Callable[[str, str], KeyValueStorage]


class SessionRegistry:
    """Live authorization sessions keyed by session id.

    Sessions idle for longer than `idle_ttl_seconds` are closed and dropped
    on the next lookup; their persisted state may still resume them.
    """

    def __init__(
        self,
        store: DocumentStore,
        storage_factory: StorageFactory,
        sign_out_hook: Optional[Callable[[], Awaitable[None]]] = None,
        idle_ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.storage_factory = storage_factory
        self.sign_out_hook = sign_out_hook
        self.idle_ttl_seconds = (
            idle_ttl_seconds if idle_ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        )
        self._clock = clock
        self._sessions: dict[str, AuthorizationSession] = {}
        self._last_access: dict[str, float] = {}

    def _build(self, session_id: str) -> AuthorizationSession:
        session_tier = self.storage_factory(session_id, "session")
        durable_tier = self.storage_factory(session_id, "durable")
        identity = IdentityStore(durable_tier, session_tier, sign_out_hook=self.sign_out_hook)
        return AuthorizationSession(self.store, identity, session_tier, session_id=session_id)

    async def _register(self, session: AuthorizationSession) -> AuthorizationSession:
        # Only fully bootstrapped sessions are held
        try:
            await session.bootstrap()
        except Exception:
            session.close()
            raise
        self._sessions[session.session_id] = session
        self._last_access[session.session_id] = self._clock()
        return session

    async def login(self, principal: Principal, remember: bool = True) -> AuthorizationSession:
        session = self._build(uuid.uuid4().hex).open()
        session.login(principal, remember)
        return await self._register(session)

    async def resume(self, session_id: str) -> Optional[AuthorizationSession]:
        """Rebuild a session from persisted state after a process restart."""
        session = self._build(session_id).open()
        if session.principal is None:
            session.close()
            return None
        await self._register(session)
        authz_logger.info("session resumed", session_id=session_id, principal_id=session.principal.id)
        return session

    async def get(self, session_id: str) -> Optional[AuthorizationSession]:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is not None and not session.closed:
            self._last_access[session_id] = self._clock()
            return session
        return await self.resume(session_id)

    def evict_idle(self) -> int:
        """Close and drop sessions idle past the TTL. Returns how many."""
        cutoff = self._clock() - self.idle_ttl_seconds
        expired = [sid for sid, seen in self._last_access.items() if seen < cutoff]
        for session_id in expired:
            self._drop(session_id).close()
        if expired:
            authz_logger.info("evicted idle sessions", count=len(expired))
        return len(expired)

    def _drop(self, session_id: str) -> Optional[AuthorizationSession]:
        self._last_access.pop(session_id, None)
        return self._sessions.pop(session_id, None)

    async def logout(self, session_id: str) -> bool:
        session = self._drop(session_id)
        if session is None:
            return False
        await session.logout()
        return True

    def close_all(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._last_access.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
