import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rolegate.db.database import create_tables
from rolegate.permissions.exceptions import DocumentStoreError
from rolegate.permissions.repository import (
    load_max_roles_per_user,
    load_override_documents,
    load_role_directory,
    role_from_document,
    role_to_document,
)
from rolegate.permissions.models import Role
from rolegate.storage.documents import Document, InMemoryDocumentStore, SqlDocumentStore

pytestmark = [pytest.mark.anyio, pytest.mark.integration]


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield SqlDocumentStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()


async def test_sql_store_round_trip(sql_store):
    await sql_store.set_document("roles", "admin", {"name": "Admin", "position": 10})
    await sql_store.set_document("roles", "mechanic", {"name": "Mechanic", "position": 50})

    doc = await sql_store.get_document("roles", "admin")
    assert doc == Document("admin", {"name": "Admin", "position": 10})
    assert await sql_store.get_document("roles", "ghost") is None
    assert [d.key for d in await sql_store.list_documents("roles")] == ["admin", "mechanic"]
    assert await sql_store.list_documents("rolePermissions") == []


async def test_sql_store_merge_and_replace(sql_store):
    await sql_store.set_document("rolePermissions", "mechanic", {"page.sales.view": True})
    await sql_store.set_document("rolePermissions", "mechanic", {"returns.process": False}, merge=True)
    doc = await sql_store.get_document("rolePermissions", "mechanic")
    assert doc.data == {"page.sales.view": True, "returns.process": False}

    await sql_store.set_document("rolePermissions", "mechanic", {"customers.add": True})
    doc = await sql_store.get_document("rolePermissions", "mechanic")
    assert doc.data == {"customers.add": True}


async def test_sql_errors_become_document_store_errors():
    class FailingSession:
        async def __aenter__(self):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        async def __aexit__(self, *exc):
            return False

    store = SqlDocumentStore(session_factory=FailingSession)
    with pytest.raises(DocumentStoreError):
        await store.list_documents("roles")
    with pytest.raises(DocumentStoreError):
        await store.set_document("roles", "admin", {})


async def test_in_memory_store_outage():
    store = InMemoryDocumentStore({"roles": {"admin": {"name": "Admin"}}})
    store.available = False
    with pytest.raises(DocumentStoreError):
        await store.list_documents("roles")
    with pytest.raises(DocumentStoreError):
        await load_role_directory(store)


async def test_in_memory_store_returns_copies():
    store = InMemoryDocumentStore({"roles": {"admin": {"name": "Admin"}}})
    doc = await store.get_document("roles", "admin")
    doc.data["name"] = "Changed"
    assert (await store.get_document("roles", "admin")).data == {"name": "Admin"}


def test_role_from_document_defaults():
    role = role_from_document(Document("viewer", {}))
    assert role.name == "viewer"
    assert role.color == "#6b7280"
    assert role.position == 999
    assert role.is_default is False
    assert role.permissions == {}


def test_role_from_document_rejects_bad_fields():
    role = role_from_document(Document("odd", {
        "name": "Odd",
        "position": True,
        "isDefault": "yes",
        "permissions": {"page.home.view": True, "page.sales.view": "true"},
    }))
    assert role.position == 999
    assert role.is_default is False
    assert role.permissions == {"page.home.view": True}


def test_role_document_round_trip():
    role = Role(id="staff", name="Staff", color="#3b82f6", position=100, is_default=True,
                permissions={"returns.process": True})
    assert role_from_document(Document("staff", role_to_document(role))) == role


async def test_load_role_directory_sorts_and_reads_limit():
    store = InMemoryDocumentStore({
        "roles": {
            "mechanic": {"name": "Mechanic", "position": 50},
            "admin": {"name": "Admin", "position": 10},
        },
        "systemSettings": {"roles": {"maxRolesPerUser": 2}},
    })
    directory = await load_role_directory(store)
    assert directory.loaded is True
    assert [r.id for r in directory] == ["admin", "mechanic"]
    assert directory.max_roles_per_user == 2


async def test_max_roles_falls_back_to_default():
    store = InMemoryDocumentStore({"systemSettings": {"roles": {"maxRolesPerUser": "many"}}})
    assert await load_max_roles_per_user(store) == 5
    assert await load_max_roles_per_user(InMemoryDocumentStore()) == 5


async def test_load_override_documents_normalizes():
    store = InMemoryDocumentStore({
        "rolePermissions": {
            "Mechanic": {"page.sales.view": True, "note": "ignored"},
            "empty": {"label": "no grants"},
        },
    })
    assert await load_override_documents(store) == {"mechanic": {"page.sales.view": True}}


def test_role_from_document_coerces_name_and_color():
    role = role_from_document(Document("odd", {"name": 5, "color": ["red"], "position": float("inf")}))
    assert role.name == "odd"
    assert role.color == "#6b7280"
    assert role.position == 999


async def test_load_roles_keeps_well_formed_documents():
    store = InMemoryDocumentStore({
        "roles": {
            "admin": {"name": "Admin", "position": 10},
            "weird": {"name": "", "position": "high"},
        },
    })
    directory = await load_role_directory(store)
    assert [r.id for r in directory] == ["admin", "weird"]
    assert directory.get("weird").name == "weird"
