from typing import Iterable, Iterator, Optional

from rolegate.core.config import settings
from .models import Role


class RoleDirectory:
    """Immutable snapshot of the roles collection.

    `loaded` distinguishes "still fetching" from "fetched and empty"; an
    empty loaded directory is a valid state.
    """

    def __init__(
        self,
        roles: Iterable[Role] = (),
        loaded: bool = False,
        max_roles_per_user: Optional[int] = None,
    ):
        self._roles = tuple(sorted(roles, key=lambda r: r.position))
        self._by_id = {r.id: r for r in self._roles}
        self.loaded = loaded
        self.max_roles_per_user = (
            max_roles_per_user if max_roles_per_user is not None else settings.DEFAULT_MAX_ROLES_PER_USER
        )

    @classmethod
    def pending(cls) -> "RoleDirectory":
        return cls(loaded=False)

    @property
    def roles(self) -> tuple[Role, ...]:
        return self._roles

    def get(self, role_id: Optional[str]) -> Optional[Role]:
        if not role_id:
            return None
        return self._by_id.get(role_id)

    def __contains__(self, role_id: str) -> bool:
        return role_id in self._by_id

    def __iter__(self) -> Iterator[Role]:
        return iter(self._roles)

    def __len__(self) -> int:
        return len(self._roles)
