"""
Project Model

A deployable project identified by (owner, name).
"""

from sqlalchemy import Column, String, ForeignKey, Index

from pushdeploy.db.base import Base, BaseModel


class Project(Base, BaseModel):
    """
    Project table

    Each project owns one bare repository on disk, its builds, its
    deployments, environment variables, shares and git credentials. Rows
    referencing a project are removed by ON DELETE CASCADE.
    """
    __tablename__ = "pd_project"

    owner_id = Column(String(36), ForeignKey("pd_user.id", ondelete="CASCADE"), nullable=False, comment="Owning user ID")
    owner = Column(String(64), nullable=False, comment="Owning user's username")
    name = Column(String(128), nullable=False, comment="Project name, unique per owner")
    slug = Column(String(191), nullable=False, comment="Hostname label, unique across projects")

    __table_args__ = (
        Index("idx_project_owner_name", "owner", "name", unique=True),
        Index("idx_project_slug", "slug", unique=True),
        Index("idx_project_owner_id", "owner_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __repr__(self):
        return f"<Project(id={self.id}, owner={self.owner}, name={self.name})>"
