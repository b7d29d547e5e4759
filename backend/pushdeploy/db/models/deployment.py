"""
Deployment Model
"""

import enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, Enum as SQLEnum

from pushdeploy.db.base import Base, BaseModel


class DeploymentStatus(str, enum.Enum):
    """Deployment lifecycle states"""
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    RETIRED = "RETIRED"
    FAILED = "FAILED"


class Deployment(Base, BaseModel):
    """
    Deployment table

    A running (or once running) instance of a successful build. At most one
    row per project is ACTIVE.
    """
    __tablename__ = "pd_deployment"

    project_id = Column(String(36), ForeignKey("pd_project.id", ondelete="CASCADE"), nullable=False, comment="Project ID")
    build_id = Column(String(36), ForeignKey("pd_build.id", ondelete="SET NULL"), nullable=True, comment="Producing build")
    container_name = Column(String(255), nullable=True, comment="Docker container name")
    container_id = Column(String(128), nullable=True, comment="Docker container ID")
    host = Column(String(255), nullable=True, comment="Internal address host")
    port = Column(Integer, nullable=True, comment="Internal address port")
    hostname = Column(String(255), nullable=False, comment="External hostname")
    status = Column(SQLEnum(DeploymentStatus), nullable=False, default=DeploymentStatus.STARTING, comment="Deployment status")
    error_message = Column(String(2000), nullable=True, comment="Failure diagnostic")
    activated_at = Column(DateTime, nullable=True, comment="Became ACTIVE")
    retired_at = Column(DateTime, nullable=True, comment="Replaced or torn down")

    __table_args__ = (
        Index("idx_deployment_project_status", "project_id", "status"),
    )

    @property
    def address(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __repr__(self):
        return f"<Deployment(id={self.id}, project_id={self.project_id}, status={self.status})>"
