"""
Build Schemas
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from pushdeploy.db.models.build import BuildStatus


class BuildSummary(BaseModel):
    """Build list row"""
    id: str
    status: BuildStatus
    created_at: datetime = Field(..., validation_alias="create_time")

    class Config:
        from_attributes = True
        populate_by_name = True


class BuildDetail(BaseModel):
    """Build with its (possibly live) log"""
    id: str
    status: BuildStatus
    commit_sha: str
    ref: str
    image_tag: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    log: str = ""


class ProjectStatus(BaseModel):
    """Latest build plus current deployment"""
    build: Optional[BuildSummary] = None
    deployment_status: Optional[str] = None
    hostname: Optional[str] = None
