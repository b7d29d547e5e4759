"""
Build Model
"""

import enum

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.dialects.mysql import LONGTEXT

from pushdeploy.db.base import Base, BaseModel


class BuildStatus(str, enum.Enum):
    """Build lifecycle states"""
    QUEUED = "QUEUED"
    BUILDING = "BUILDING"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildStatus.SUCCESSFUL, BuildStatus.FAILED)


class Build(Base, BaseModel):
    """
    Build table

    One row per pushed ref update. Status moves QUEUED -> BUILDING ->
    SUCCESSFUL | FAILED and never leaves a terminal state.
    """
    __tablename__ = "pd_build"

    project_id = Column(String(36), ForeignKey("pd_project.id", ondelete="CASCADE"), nullable=False, comment="Project ID")
    commit_sha = Column(String(64), nullable=False, comment="Source commit")
    ref = Column(String(255), nullable=False, comment="Pushed ref, e.g. refs/heads/master")
    status = Column(SQLEnum(BuildStatus), nullable=False, default=BuildStatus.QUEUED, comment="Build status")
    image_tag = Column(String(255), nullable=True, comment="Produced image tag")
    log = Column(Text().with_variant(LONGTEXT, "mysql"), nullable=True, comment="Build output")
    error_message = Column(String(2000), nullable=True, comment="Failure diagnostic")
    started_at = Column(DateTime, nullable=True, comment="Entered BUILDING")
    finished_at = Column(DateTime, nullable=True, comment="Reached a terminal state")

    __table_args__ = (
        Index("idx_build_project_created", "project_id", "create_time"),
        Index("idx_build_status", "status"),
    )

    def __repr__(self):
        return f"<Build(id={self.id}, project_id={self.project_id}, status={self.status})>"
