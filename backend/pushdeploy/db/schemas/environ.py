"""
Environment Variable Schemas
"""

import re
from typing import Dict, List
from pydantic import BaseModel, Field, field_validator

ENV_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_env_key(v: str) -> str:
    if not ENV_KEY_PATTERN.match(v):
        raise ValueError(f"Invalid environment variable name: {v!r}")
    return v


class EnvVarSet(BaseModel):
    """Create or overwrite one variable"""
    key: str = Field(..., max_length=255)
    value: str

    @field_validator("key")
    @classmethod
    def key_valid(cls, v: str) -> str:
        return validate_env_key(v)


class EnvVarDelete(BaseModel):
    """Delete one variable"""
    key: str = Field(..., max_length=255)


class EnvVarBulk(BaseModel):
    """Replace the whole variable set"""
    variables: Dict[str, str]

    @field_validator("variables")
    @classmethod
    def keys_valid(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key in v:
            validate_env_key(key)
        return v


class EnvVarResponse(BaseModel):
    key: str
    value: str


class EnvVarList(BaseModel):
    variables: List[EnvVarResponse]
