"""
Pydantic models for the authorization core.
"""
from typing import Optional
from pydantic import BaseModel, Field

from .roles import DEVELOPER_ROLE_ID, DEVELOPER_POSITION

DEFAULT_ROLE_COLOR = "#6b7280"
UNRANKED_POSITION = 999


class Role(BaseModel):
    """A role from the Role Directory. Lower position = more authority."""
    id: str
    name: str
    color: str = DEFAULT_ROLE_COLOR
    position: int = UNRANKED_POSITION
    is_default: bool = False
    is_protected: bool = False
    permissions: dict[str, bool] = Field(default_factory=dict)

    @property
    def hierarchy_position(self) -> int:
        if self.id == DEVELOPER_ROLE_ID:
            return DEVELOPER_POSITION
        return self.position


class Principal(BaseModel):
    """The signed-in user as handed over by the identity layer."""
    id: str
    name: str
    roles: list[str] = Field(default_factory=list)
    role: Optional[str] = None


class PreviewSnapshot(BaseModel):
    """Persisted role-preview record: `{"enabled": bool, "previewRoleId": str | null}`."""
    enabled: bool = False
    preview_role_id: Optional[str] = Field(default=None, alias="previewRoleId")

    model_config = {"populate_by_name": True}

    @property
    def is_empty(self) -> bool:
        return not self.enabled and not self.preview_role_id

    def to_storage(self) -> dict:
        return {"enabled": self.enabled, "previewRoleId": self.preview_role_id}
