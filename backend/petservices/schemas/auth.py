"""
PetServices Backend — Authentication Schemas
=============================================

What:  Request bodies for register/login, the public user view, and the
       decoded session token claims.

The password hash never appears in any response model.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class LoginRequest(BaseModel):
    # Plain str: a malformed email must fail as "wrong credentials", not 400
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class UserPublic(BaseModel):
    """What the API exposes about a user."""
    id: int
    name: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class TokenClaims(BaseModel):
    """
    Decoded session token payload.

    Tokens are stateless: validity is signature + expiry only.
    """
    user_id: int
    email: str
    name: Optional[str] = None
    role: str
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class RegisterResponse(BaseModel):
    success: bool = True
    message: str = "Account created. Please log in."
    user: UserPublic
    token: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: UserPublic


class MeResponse(BaseModel):
    success: bool = True
    user: TokenClaims
