import pytest

from rolegate.core.config import settings
from rolegate.permissions.identity import IdentityStore
from rolegate.permissions.models import Principal
from rolegate.permissions.session import AuthorizationSession
from rolegate.storage.documents import InMemoryDocumentStore
from rolegate.storage.session_storage import MemoryStorage


# Role documents as stored in the roles collection
ROLE_DOCUMENTS = {
    "developer": {"name": "Developer", "position": 0, "isProtected": True, "permissions": {}},
    "superadmin": {"name": "Superadmin", "position": 1},
    "admin": {"name": "Admin", "position": 10},
    "employee": {"name": "Employee", "position": 30},
    "mechanic": {"name": "Mechanic", "position": 50},
}


def _build_store(roles=None, overrides=None, max_roles=None) -> InMemoryDocumentStore:
    collections = {
        settings.ROLES_COLLECTION: dict(ROLE_DOCUMENTS if roles is None else roles),
        settings.OVERRIDES_COLLECTION: dict(overrides or {}),
    }
    if max_roles is not None:
        collections[settings.SETTINGS_COLLECTION] = {"roles": {"maxRolesPerUser": max_roles}}
    return InMemoryDocumentStore(collections)


class SessionParts:
    """A session plus direct handles on its storages."""

    def __init__(self, store=None, session_storage=None, durable_storage=None):
        self.store = store or _build_store()
        self.session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.durable_storage = durable_storage if durable_storage is not None else MemoryStorage()
        self.identity = IdentityStore(self.durable_storage, self.session_storage)
        self.session = AuthorizationSession(self.store, self.identity, self.session_storage)


@pytest.fixture
def make_store():
    return _build_store


@pytest.fixture
def make_parts():
    return SessionParts


@pytest.fixture
def store():
    return _build_store()


@pytest.fixture
def parts(store):
    return SessionParts(store=store)


@pytest.fixture
def admin():
    return Principal(id="u-admin", name="Ada Admin", roles=["admin"])


@pytest.fixture
def mechanic():
    return Principal(id="u-mech", name="Mo Mechanic", roles=["mechanic"])


@pytest.fixture
def developer():
    return Principal(id="u-dev", name="Dee Developer", roles=["developer"])
