from enum import Enum


class RoleName(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    EMPLOYEE = "employee"
    MECHANIC = "mechanic"


# Storage ids of the two roles every installation carries
DEVELOPER_ROLE_ID = "developer"
STAFF_ROLE_ID = "staff"

# Developer is pinned to the top of the hierarchy
DEVELOPER_POSITION = 0

ROLE_LEVELS: dict[RoleName, int] = {
    RoleName.SUPERADMIN: 1,
    RoleName.ADMIN: 2,
    RoleName.EMPLOYEE: 3,
    RoleName.MECHANIC: 4,
}
