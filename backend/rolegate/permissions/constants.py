from enum import Enum


class Permission(str, Enum):
    # Page access
    PAGE_HOME_VIEW = "page.home.view"
    PAGE_INVENTORY_VIEW = "page.inventory.view"
    PAGE_SALES_VIEW = "page.sales.view"
    PAGE_SERVICES_VIEW = "page.services.view"
    PAGE_TRANSACTIONS_VIEW = "page.transactions.view"
    PAGE_NEW_TRANSACTION_VIEW = "page.newtransaction.view"
    PAGE_RETURNS_VIEW = "page.returns.view"
    PAGE_CUSTOMERS_VIEW = "page.customers.view"
    PAGE_USERS_VIEW = "page.users.view"
    PAGE_SETTINGS_VIEW = "page.settings.view"

    # Transactions
    TRANSACTIONS_CREATE = "transactions.create"
    TRANSACTIONS_DELETE = "transactions.delete"

    # Users
    USERS_EDIT_ANY = "users.edit.any"
    USERS_EDIT_SELF = "users.edit.self"
    USERS_DELETE = "users.delete"

    # Returns & refunds
    RETURNS_PROCESS = "returns.process"
    RETURNS_ARCHIVE = "returns.archive"
    RETURNS_UNARCHIVE = "returns.unarchive"

    # Inventory & services
    INVENTORY_ADD = "inventory.add"
    INVENTORY_EDIT = "inventory.edit"
    SERVICES_ADD = "services.add"
    SERVICES_EDIT = "services.edit"

    # Customers
    CUSTOMERS_ADD = "customers.add"
    CUSTOMERS_EDIT = "customers.edit"

    # Role management
    ROLES_VIEW = "roles.view"
    ROLES_MANAGE = "roles.manage"

    # Tooling
    DEBUG_TOOLS_ACCESS = "debug.tools.access"


def permission_key(permission) -> str:
    """Plain string key for a Permission member or a raw key."""
    if isinstance(permission, Permission):
        return permission.value
    return str(permission)


PAGE_VIEW_PERMISSIONS: list[tuple[str, str]] = [
    (Permission.PAGE_HOME_VIEW.value, "Home"),
    (Permission.PAGE_INVENTORY_VIEW.value, "Inventory"),
    (Permission.PAGE_SALES_VIEW.value, "Sales Records"),
    (Permission.PAGE_SERVICES_VIEW.value, "Services Offered"),
    (Permission.PAGE_TRANSACTIONS_VIEW.value, "Transaction History"),
    (Permission.PAGE_NEW_TRANSACTION_VIEW.value, "New Transaction"),
    (Permission.PAGE_RETURNS_VIEW.value, "Returns & Refunds"),
    (Permission.PAGE_CUSTOMERS_VIEW.value, "Customers"),
    (Permission.PAGE_USERS_VIEW.value, "User Management"),
    (Permission.PAGE_SETTINGS_VIEW.value, "Settings"),
]
