"""
Project Schemas

Pydantic models for Project validation and serialization
"""

import re
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


class ProjectCreate(BaseModel):
    """Schema for creating a project"""
    name: str = Field(..., max_length=64, description="Project name, unique per owner")

    @field_validator("name")
    @classmethod
    def name_format(cls, v: str) -> str:
        if v.endswith(".git") or not PROJECT_NAME_PATTERN.match(v):
            raise ValueError("Project name may contain letters, digits, '.', '_' and '-' and must not end with .git")
        return v


class ProjectResponse(BaseModel):
    """Schema for project response"""
    id: str
    owner: str
    name: str
    create_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectCreated(ProjectResponse):
    """Returned once by project creation, carrying the one-time git password"""
    git_url: str
    git_username: str
    git_password: str
    hostname: str


class DashboardProject(ProjectResponse):
    """Project row of the dashboard"""
    is_owner: bool
    latest_build_status: Optional[str] = None
    hostname: Optional[str] = None
