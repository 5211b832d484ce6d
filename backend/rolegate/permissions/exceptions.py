from fastapi import HTTPException, status


class PermissionDenied(HTTPException):
    def __init__(self, permission: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {permission}",
        )


class SessionNotFound(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization session expired or not found",
            headers={"WWW-Authenticate": "Bearer"},
        )


class DocumentStoreError(Exception):
    """The remote document store could not be read or written."""


class StorageError(Exception):
    """A session or durable key/value storage operation failed."""
