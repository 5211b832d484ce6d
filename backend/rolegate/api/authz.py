"""Authorization API: sessions, permission queries and role preview."""
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from rolegate.core.logging import api_logger
from rolegate.core.security import create_session_token, get_token_claims, verify_identity_handoff
from rolegate.permissions.dependencies import get_authz_session, get_registry
from rolegate.permissions.exceptions import SessionNotFound
from rolegate.permissions.models import Principal, Role
from rolegate.permissions.session import AuthorizationSession, SessionRegistry

router = APIRouter(prefix="/authz", tags=["authz"])


# === Pydantic Models ===

class SessionCreate(BaseModel):
    """Verified identity handed over by the sign-in layer."""
    id: str = Field(..., min_length=1)
    name: str
    roles: List[str] = []
    role: Optional[str] = None
    remember: bool = True


class PreviewStart(BaseModel):
    roleId: str = Field(..., min_length=1)


def _role_payload(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "color": role.color,
        "position": role.hierarchy_position,
        "isDefault": role.is_default,
        "isProtected": role.is_protected,
    }


def _preview_payload(session: AuthorizationSession) -> dict:
    return session.preview.to_storage()


# === Sessions ===

@router.post(
    "/sessions",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_identity_handoff)],
)
async def create_session(body: SessionCreate, registry: SessionRegistry = Depends(get_registry)):
    # Roles in the body are taken as already verified by the sign-in layer
    principal = Principal(id=body.id, name=body.name, roles=body.roles, role=body.role)
    session = await registry.login(principal, remember=body.remember)
    api_logger.info("authorization session created", principal_id=principal.id)
    return {
        "sessionId": session.session_id,
        "token": create_session_token(session.session_id, principal.id),
    }


@router.delete("/sessions/current", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    claims: dict = Depends(get_token_claims),
    registry: SessionRegistry = Depends(get_registry),
):
    removed = await registry.logout(claims["session_id"])
    if not removed:
        raise SessionNotFound()


# === Queries ===

@router.get("/me")
async def me(session: AuthorizationSession = Depends(get_authz_session)):
    principal = session.principal
    return {
        "principal": {"id": principal.id, "name": principal.name},
        "actualRoleIds": session.actual_role_ids(),
        "effectiveRoleIds": session.effective_role_ids(),
        "preview": _preview_payload(session),
        "usingDefaults": session.using_defaults,
    }


@router.get("/can/{permission_key}")
async def can_perform(permission_key: str, session: AuthorizationSession = Depends(get_authz_session)):
    return {"permission": permission_key, "allowed": session.can(permission_key)}


@router.get("/pages")
async def pages(session: AuthorizationSession = Depends(get_authz_session)):
    return {"pages": session.allowed_pages()}


@router.get("/roles")
async def roles(session: AuthorizationSession = Depends(get_authz_session)):
    directory = session.directory
    return {
        "roles": [_role_payload(r) for r in directory],
        "loaded": directory.loaded,
        "maxRolesPerUser": directory.max_roles_per_user,
    }


@router.post("/refresh")
async def refresh(session: AuthorizationSession = Depends(get_authz_session)):
    await session.bootstrap()
    return {"usingDefaults": session.using_defaults, "roles": len(session.directory)}


# === Role preview ===

@router.get("/preview/options")
async def preview_options(session: AuthorizationSession = Depends(get_authz_session)):
    return {"roles": [_role_payload(r) for r in session.preview_options()]}


@router.post("/preview")
async def start_preview(body: PreviewStart, session: AuthorizationSession = Depends(get_authz_session)):
    applied = session.start_preview(body.roleId)
    return {
        "applied": applied,
        "preview": _preview_payload(session),
        "effectiveRoleIds": session.effective_role_ids(),
    }


@router.delete("/preview")
async def stop_preview(session: AuthorizationSession = Depends(get_authz_session)):
    session.stop_preview()
    return {
        "preview": _preview_payload(session),
        "effectiveRoleIds": session.effective_role_ids(),
    }
