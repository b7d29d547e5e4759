"""
Project Share Model
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey

from pushdeploy.db.base import Base


class ProjectShare(Base):
    """Grants a non-owner user access to a project"""
    __tablename__ = "pd_project_share"

    project_id = Column(String(36), ForeignKey("pd_project.id", ondelete="CASCADE"), primary_key=True, comment="Project ID")
    user_id = Column(String(36), ForeignKey("pd_user.id", ondelete="CASCADE"), primary_key=True, comment="Member user ID")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, comment="Invitation time")

    def __repr__(self):
        return f"<ProjectShare(project_id={self.project_id}, user_id={self.user_id})>"
