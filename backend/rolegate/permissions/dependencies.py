from fastapi import Depends, Request

from rolegate.core.logging import api_logger, set_session_id
from rolegate.core.security import get_token_claims
from rolegate.permissions.constants import permission_key
from rolegate.permissions.exceptions import PermissionDenied, SessionNotFound
from rolegate.permissions.session import AuthorizationSession, SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_authz_session(
    claims: dict = Depends(get_token_claims),
    registry: SessionRegistry = Depends(get_registry),
) -> AuthorizationSession:
    session = await registry.get(claims["session_id"])
    if session is None or session.principal is None:
        raise SessionNotFound()
    set_session_id(session.session_id)
    return session


def require_permission(permission):
    """Page guard: 403 unless the session's effective roles grant `permission`."""
    key = permission_key(permission)

    async def dependency(session: AuthorizationSession = Depends(get_authz_session)) -> AuthorizationSession:
        if not session.can(key):
            api_logger.info(
                f"[PERMS_DENIED] principal_id={session.principal.id} "
                f"roles={session.effective_role_ids()} permission={key}"
            )
            raise PermissionDenied(key)
        return session

    return dependency
