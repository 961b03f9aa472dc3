"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=200)


class UserInfo(CamelModel):
    id: Optional[int] = None
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    department: Optional[str] = None


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
