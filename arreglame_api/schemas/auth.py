from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from arreglame_api.db.models.enums import ActiveRole


class TokenPair(BaseModel):
    """Access and refresh tokens."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class RegisterRequest(BaseModel):
    """Registration details for creating a new user."""
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=6, description="User password")
    full_name: Optional[str] = Field(None, description="Full name")
    role: ActiveRole = Field(ActiveRole.CLIENT, description="Initial role: CLIENT or WORKER")


class LoginRequest(BaseModel):
    """Credentials plus the optional role to enter the app as."""
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., description="User password")
    role: Optional[ActiveRole] = Field(None, description="Role to activate; must be held by the user")


class UserRead(BaseModel):
    """User read model."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    full_name: Optional[str] = Field(None)
    roles: List[str] = Field(default_factory=list, description="Roles held by the user")
    active_role: str = Field(..., description="Mode the user is currently operating in")
    is_active: bool = Field(..., description="Active flag")
    created_at: datetime = Field(..., description="Created timestamp")


class AuthResponse(TokenPair):
    """Token pair returned together with the authenticated user."""
    user: UserRead


class SwitchRoleRequest(BaseModel):
    active_role: ActiveRole = Field(..., description="Role to switch to")


class SwitchRoleResponse(BaseModel):
    access_token: str = Field(..., description="New access token carrying the active role")
    token_type: str = Field("bearer")
    user: UserRead
