"""
Tests for AuthorizationSession and SessionRegistry.

Covers bootstrap and fallback, stale async results, the split between
actual and effective roles, and preview revalidation on directory loads.
"""
import asyncio
import json

import pytest

from rolegate.core.config import settings
from rolegate.permissions.constants import Permission
from rolegate.permissions.events import SessionEvent
from rolegate.permissions.models import Principal
from rolegate.permissions.session import SessionRegistry
from rolegate.storage.documents import DocumentStore
from rolegate.storage.session_storage import MemoryStorage, memory_storage_factory

pytestmark = pytest.mark.anyio


class GatedStore(DocumentStore):
    """Blocks reads on `inner` until `gate` is set."""

    def __init__(self, inner):
        self.inner = inner
        self.gate = asyncio.Event()

    async def list_documents(self, collection):
        await self.gate.wait()
        return await self.inner.list_documents(collection)

    async def get_document(self, collection, key):
        await self.gate.wait()
        return await self.inner.get_document(collection, key)


async def test_bootstrap_loads_directory_and_overrides(make_store, make_parts, mechanic):
    store = make_store(overrides={"Mechanic": {"page.sales.view": True}}, max_roles=3)
    parts = make_parts(store=store)
    session = parts.session.open()
    session.login(mechanic)

    assert session.directory.loaded is False
    await session.bootstrap()

    assert session.directory.loaded is True
    assert [r.id for r in session.directory] == ["developer", "superadmin", "admin", "employee", "mechanic"]
    assert session.directory.max_roles_per_user == 3
    assert session.using_defaults is False
    assert session.can(Permission.PAGE_SALES_VIEW) is True


async def test_unavailable_store_falls_back_to_defaults(parts, admin):
    parts.store.available = False
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()

    assert session.using_defaults is True
    assert session.directory.loaded is True
    assert len(session.directory) == 0
    assert session.can(Permission.PAGE_SETTINGS_VIEW) is True
    # No known roles, so nothing can be previewed
    assert session.start_preview("mechanic") is False


async def test_role_embedded_permissions_apply_by_role_id(make_store, make_parts):
    roles = {
        "staff": {"name": "Staff", "position": 100, "isDefault": True, "permissions": {"returns.process": True}},
    }
    parts = make_parts(store=make_store(roles=roles))
    session = parts.session.open()
    session.login(Principal(id="s1", name="Sam", roles=["staff"]))
    await session.bootstrap()

    assert session.can("returns.process") is True
    assert session.can("returns.archive") is False
    assert session.using_defaults is False


async def test_preview_changes_effective_roles_only(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()

    assert session.can("page.settings.view") is True
    assert session.start_preview("mechanic") is True

    assert session.actual_role_ids() == ["admin"]
    assert session.effective_role_ids() == ["mechanic"]
    assert session.can("page.settings.view") is False
    assert session.can("page.home.view") is True

    # Eligibility keeps using actual roles while previewing
    assert session.start_preview("employee") is True
    assert session.effective_role_ids() == ["employee"]
    assert [r.id for r in session.preview_options()] == ["admin", "employee", "mechanic"]

    session.stop_preview()
    assert session.effective_role_ids() == ["admin"]
    assert session.preview.preview_role_id == "employee"


async def test_escalating_preview_is_refused(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()

    assert session.start_preview("superadmin") is False
    assert session.start_preview("developer") is False
    assert session.effective_role_ids() == ["admin"]


async def test_mechanic_has_no_preview_options(parts, mechanic):
    session = parts.session.open()
    session.login(mechanic)
    await session.bootstrap()
    assert session.preview_options() == []


async def test_developer_may_preview_every_role(parts, developer):
    session = parts.session.open()
    session.login(developer)
    await session.bootstrap()
    ids = [r.id for r in session.preview_options()]
    assert ids == ["developer", "superadmin", "admin", "employee", "mechanic"]
    assert session.start_preview("superadmin") is True
    assert session.can(Permission.DEBUG_TOOLS_ACCESS) is True
    assert session.start_preview("mechanic") is True
    assert session.can(Permission.DEBUG_TOOLS_ACCESS) is False


async def test_hydrated_preview_ignored_until_directory_loads(make_parts, admin):
    session_storage = MemoryStorage({
        settings.PREVIEW_STORAGE_KEY: json.dumps({"enabled": True, "previewRoleId": "mechanic"}),
    })
    durable = MemoryStorage({settings.AUTH_STORAGE_KEY: admin.model_dump_json()})
    parts = make_parts(session_storage=session_storage, durable_storage=durable)

    session = parts.session.open()
    assert session.principal == admin
    assert session.preview.enabled is True
    assert session.effective_role_ids() == ["admin"]

    await session.bootstrap()
    assert session.effective_role_ids() == ["mechanic"]


async def test_hydrated_escalating_preview_cleared_on_load(make_parts, admin):
    session_storage = MemoryStorage({
        settings.PREVIEW_STORAGE_KEY: json.dumps({"enabled": True, "previewRoleId": "superadmin"}),
    })
    durable = MemoryStorage({settings.AUTH_STORAGE_KEY: admin.model_dump_json()})
    parts = make_parts(session_storage=session_storage, durable_storage=durable)

    session = parts.session.open()
    await session.bootstrap()

    assert session.preview.enabled is False
    assert session.preview.preview_role_id is None
    assert session.effective_role_ids() == ["admin"]
    assert settings.PREVIEW_STORAGE_KEY not in session_storage


async def test_preview_cleared_when_role_disappears(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    session.start_preview("mechanic")

    parts.store.remove_document(settings.ROLES_COLLECTION, "mechanic")
    await session.refresh_roles()

    assert session.preview.enabled is False
    assert session.effective_role_ids() == ["admin"]


async def test_preview_cleared_when_overrides_revoke_roles_view(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    session.start_preview("mechanic")

    await parts.store.set_document(settings.OVERRIDES_COLLECTION, "admin", {"roles.view": False})
    await session.refresh_overrides()

    assert session.preview.enabled is False
    assert session.effective_role_ids() == ["admin"]


async def test_stale_directory_discarded_after_close(make_store, make_parts, admin):
    store = GatedStore(make_store())
    parts = make_parts(store=store)
    session = parts.session.open()
    session.login(admin)

    task = asyncio.create_task(session.refresh_roles())
    await asyncio.sleep(0)
    session.close()
    store.gate.set()

    assert await task is False
    assert session.directory.loaded is False
    assert len(session.directory) == 0


async def test_stale_overrides_discarded_after_relogin(make_store, make_parts, admin, mechanic):
    store = GatedStore(make_store(overrides={"mechanic": {"page.sales.view": True}}))
    parts = make_parts(store=store)
    session = parts.session.open()
    session.login(admin)

    task = asyncio.create_task(session.refresh_overrides())
    await asyncio.sleep(0)
    session.login(mechanic)
    store.gate.set()

    assert await task is False
    assert session.using_defaults is True
    assert session.can("page.sales.view") is False


async def test_logout_clears_identity_and_preview(parts, admin):
    session = parts.session.open()
    session.login(admin, remember=True)
    await session.bootstrap()
    session.start_preview("mechanic")

    await session.logout()

    assert session.closed is True
    assert session.principal is None
    assert session.effective_role_ids() == []
    assert session.can("page.home.view") is False
    assert settings.AUTH_STORAGE_KEY not in parts.durable_storage
    assert settings.PREVIEW_STORAGE_KEY not in parts.session_storage
    with pytest.raises(RuntimeError):
        session.login(admin)


async def test_listeners_see_events_in_order(parts, admin):
    seen = []
    parts.session.subscribe(seen.append)
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    session.start_preview("mechanic")

    assert seen[:2] == [SessionEvent.PRINCIPAL_CHANGED, SessionEvent.PRINCIPAL_CHANGED]
    assert SessionEvent.ROLES_LOADED in seen
    assert SessionEvent.OVERRIDES_LOADED in seen
    assert seen[-1] == SessionEvent.PREVIEW_CHANGED


async def test_allowed_pages_follow_effective_roles(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    pages = {p["key"]: p["allowed"] for p in session.allowed_pages()}
    assert pages["page.settings.view"] is True

    session.start_preview("mechanic")
    pages = {p["key"]: p["allowed"] for p in session.allowed_pages()}
    assert pages["page.settings.view"] is False
    assert pages["page.home.view"] is True


class TestSessionRegistry:

    @pytest.fixture
    def registry(self, store):
        return SessionRegistry(store, memory_storage_factory())

    async def test_login_bootstraps_session(self, registry, admin):
        session = await registry.login(admin)
        assert session.session_id in registry
        assert session.directory.loaded is True
        assert await registry.get(session.session_id) is session

    async def test_logout_removes_session(self, registry, admin):
        session = await registry.login(admin)
        assert await registry.logout(session.session_id) is True
        assert session.closed is True
        assert session.session_id not in registry
        assert await registry.logout(session.session_id) is False

    async def test_get_unknown_session_returns_none(self, registry):
        assert await registry.get("missing") is None
        assert len(registry) == 0

    async def test_resume_restores_persisted_principal(self, store, admin):
        storages = {}

        def factory(session_id, tier):
            return storages.setdefault((session_id, tier), MemoryStorage())

        first = SessionRegistry(store, factory)
        session = await first.login(admin, remember=True)
        session.start_preview("mechanic")
        first.close_all()

        second = SessionRegistry(store, factory)
        resumed = await second.get(session.session_id)
        assert resumed is not None
        assert resumed.principal == admin
        assert resumed.effective_role_ids() == ["mechanic"]

    async def test_close_all(self, registry, admin, mechanic):
        one = await registry.login(admin)
        two = await registry.login(mechanic)
        registry.close_all()
        assert one.closed and two.closed
        assert len(registry) == 0


class SlowOverrideStore(DocumentStore):
    """Override reads finish after role reads."""

    def __init__(self, inner, delay=0.05):
        self.inner = inner
        self.delay = delay

    async def list_documents(self, collection):
        if collection == settings.OVERRIDES_COLLECTION:
            await asyncio.sleep(self.delay)
        return await self.inner.list_documents(collection)

    async def get_document(self, collection, key):
        return await self.inner.get_document(collection, key)


async def test_preview_waits_for_overrides_before_revalidating(make_store, make_parts):
    # Mechanic may only view roles through an override document
    overrides = {"mechanic": {"roles.view": True}}
    store = SlowOverrideStore(make_store(overrides=overrides))
    worker = Principal(id="u-mech", name="Mo", roles=["mechanic"])
    session_storage = MemoryStorage({
        settings.PREVIEW_STORAGE_KEY: json.dumps({"enabled": True, "previewRoleId": "mechanic"}),
    })
    durable = MemoryStorage({settings.AUTH_STORAGE_KEY: worker.model_dump_json()})
    parts = make_parts(store=store, session_storage=session_storage, durable_storage=durable)

    session = parts.session.open()
    await session.bootstrap()

    assert "mechanic" in session.table["roles.view"]
    assert session.preview.enabled is True
    assert session.preview.preview_role_id == "mechanic"
    assert session.effective_role_ids() == ["mechanic"]
    assert settings.PREVIEW_STORAGE_KEY in session_storage


async def test_not_ready_until_both_loads_finish(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.refresh_roles()

    assert session.directory.loaded is True
    assert session.ready is False
    assert session.start_preview("mechanic") is False
    assert session.preview_options() == []

    await session.refresh_overrides()
    assert session.ready is True
    assert session.start_preview("mechanic") is True


async def test_relogin_resets_loaded_data(parts, admin, mechanic):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    assert session.ready is True

    session.login(mechanic)
    assert session.ready is False
    assert session.directory.loaded is False


async def test_swapping_preview_role_disables_preview(parts, admin):
    session = parts.session.open()
    session.login(admin)
    await session.bootstrap()
    session.start_preview("mechanic")

    session.set_preview_role_id("superadmin")

    assert session.preview.enabled is False
    assert session.effective_role_ids() == ["admin"]
    assert session.can("page.settings.view") is True


async def test_malformed_role_document_is_skipped(make_store, admin):
    roles = {
        "admin": {"name": "Admin", "position": 10},
        "mechanic": {"name": "Mechanic", "position": 50},
        "broken": {"name": 5, "color": ["red"], "position": 20},
    }
    registry = SessionRegistry(make_store(roles=roles), memory_storage_factory())

    session = await registry.login(admin)

    assert len(registry) == 1
    assert session.directory.get("broken").name == "broken"
    assert session.directory.get("broken").color == "#6b7280"
    assert session.start_preview("mechanic") is True


class FailingBootstrapStore(DocumentStore):
    async def list_documents(self, collection):
        raise RuntimeError("unexpected failure")

    async def get_document(self, collection, key):
        raise RuntimeError("unexpected failure")


async def test_failed_bootstrap_is_not_registered(admin):
    registry = SessionRegistry(FailingBootstrapStore(), memory_storage_factory())
    with pytest.raises(RuntimeError):
        await registry.login(admin)
    assert len(registry) == 0


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def test_idle_sessions_are_evicted(store, admin, mechanic):
    clock = FakeClock()
    registry = SessionRegistry(store, memory_storage_factory(), idle_ttl_seconds=60, clock=clock)
    idle = await registry.login(admin)
    clock.now += 30
    active = await registry.login(mechanic)

    clock.now += 40
    assert await registry.get(active.session_id) is active
    assert idle.closed is True
    assert idle.session_id not in registry
    # In-memory storage does not outlive the session, so it cannot resume
    assert await registry.get(idle.session_id) is None

    clock.now += 50
    assert registry.evict_idle() == 0
    assert active.session_id in registry
    clock.now += 61
    assert registry.evict_idle() == 1
    assert len(registry) == 0
