"""
User Schemas

Pydantic models for registration, login and user views
"""

import re
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{1,62}$")


class UserRegister(BaseModel):
    """Schema for account registration"""
    username: str = Field(..., min_length=2, max_length=63, description="Login name")
    name: Optional[str] = Field(None, max_length=255, description="Display name")
    password: str = Field(..., min_length=8, max_length=128, description="Login password")

    @field_validator("username")
    @classmethod
    def username_format(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username may contain letters, digits, '_' and '-' only")
        return v.lower()


class UserLogin(BaseModel):
    """Schema for login"""
    username: str
    password: str


class UserResponse(BaseModel):
    """Schema for user response"""
    id: str
    username: str
    name: Optional[str] = None
    create_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Issued API session"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
