from types import MappingProxyType
from typing import Mapping

from .constants import Permission as P
from .roles import RoleName as R

_ALL = (R.SUPERADMIN.value, R.ADMIN.value, R.EMPLOYEE.value, R.MECHANIC.value)
_COUNTER = (R.SUPERADMIN.value, R.ADMIN.value, R.EMPLOYEE.value)
_ADMINS = (R.SUPERADMIN.value, R.ADMIN.value)
_SUPERADMIN = (R.SUPERADMIN.value,)

# Compiled default catalog: permission key -> ordered role names
DEFAULT_PERMISSIONS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    P.PAGE_HOME_VIEW.value: _ALL,
    P.PAGE_INVENTORY_VIEW.value: _ALL,
    P.PAGE_SALES_VIEW.value: _COUNTER,
    P.PAGE_SERVICES_VIEW.value: _ALL,
    P.PAGE_TRANSACTIONS_VIEW.value: _ALL,
    P.PAGE_NEW_TRANSACTION_VIEW.value: _ALL,
    P.PAGE_RETURNS_VIEW.value: _ALL,
    P.PAGE_CUSTOMERS_VIEW.value: _COUNTER,
    P.PAGE_USERS_VIEW.value: _ADMINS,
    P.PAGE_SETTINGS_VIEW.value: _ADMINS,

    P.TRANSACTIONS_CREATE.value: _ALL,
    P.TRANSACTIONS_DELETE.value: _ADMINS,

    P.USERS_EDIT_ANY.value: _ADMINS,
    P.USERS_EDIT_SELF.value: (R.EMPLOYEE.value, R.MECHANIC.value),
    P.USERS_DELETE.value: _ADMINS,

    # Mechanics only view returns
    P.RETURNS_PROCESS.value: _COUNTER,
    P.RETURNS_ARCHIVE.value: _ADMINS,
    P.RETURNS_UNARCHIVE.value: _SUPERADMIN,

    P.INVENTORY_ADD.value: _ADMINS,
    P.INVENTORY_EDIT.value: _ADMINS,
    P.SERVICES_ADD.value: _ADMINS,
    P.SERVICES_EDIT.value: _ADMINS,

    P.CUSTOMERS_ADD.value: _COUNTER,
    P.CUSTOMERS_EDIT.value: _COUNTER,

    P.ROLES_VIEW.value: _ADMINS,
    P.ROLES_MANAGE.value: _SUPERADMIN,

    P.DEBUG_TOOLS_ACCESS.value: _SUPERADMIN,
})

# Grants of the default Staff role created by the seeder
STAFF_PERMISSIONS: Mapping[str, bool] = MappingProxyType({
    P.PAGE_HOME_VIEW.value: True,
    P.PAGE_INVENTORY_VIEW.value: True,
    P.PAGE_SERVICES_VIEW.value: True,
    P.PAGE_TRANSACTIONS_VIEW.value: True,
    P.PAGE_NEW_TRANSACTION_VIEW.value: True,
    P.PAGE_RETURNS_VIEW.value: True,
    P.PAGE_CUSTOMERS_VIEW.value: True,
    P.INVENTORY_EDIT.value: True,
    P.SERVICES_EDIT.value: True,
    P.TRANSACTIONS_CREATE.value: True,
    P.RETURNS_PROCESS.value: True,
    P.CUSTOMERS_ADD.value: True,
    P.CUSTOMERS_EDIT.value: True,
    P.USERS_EDIT_SELF.value: True,
})
