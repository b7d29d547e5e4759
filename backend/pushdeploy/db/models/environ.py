"""
Environment Variable Model
"""

from sqlalchemy import Column, String, Text, ForeignKey, Index

from pushdeploy.db.base import Base, BaseModel


class EnvironmentVariable(Base, BaseModel):
    """Runtime environment passed to a project's containers"""
    __tablename__ = "pd_environment_variable"

    project_id = Column(String(36), ForeignKey("pd_project.id", ondelete="CASCADE"), nullable=False, comment="Project ID")
    key = Column(String(255), nullable=False, comment="Variable name")
    value = Column(Text, nullable=False, comment="Variable value")

    __table_args__ = (
        Index("idx_env_project_key", "project_id", "key", unique=True),
    )

    def __repr__(self):
        return f"<EnvironmentVariable(project_id={self.project_id}, key={self.key})>"
