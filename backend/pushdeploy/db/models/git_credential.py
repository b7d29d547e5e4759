"""
Git Credential Model
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Index

from pushdeploy.db.base import Base, BaseModel


class GitCredential(Base, BaseModel):
    """
    Git credential table

    One row per project. The plaintext password is never stored; rotating
    it overwrites ``password_hash`` and bumps ``generation``.
    """
    __tablename__ = "pd_git_credential"

    project_id = Column(String(36), ForeignKey("pd_project.id", ondelete="CASCADE"), nullable=False, comment="Project ID")
    username = Column(String(64), nullable=False, comment="Git basic-auth username")
    password_hash = Column(String(128), nullable=False, comment="bcrypt hash of the git password")
    generation = Column(Integer, nullable=False, default=1, comment="Incremented on every rotation")

    __table_args__ = (
        Index("idx_git_credential_project", "project_id", unique=True),
    )

    def __repr__(self):
        return f"<GitCredential(project_id={self.project_id}, username={self.username}, generation={self.generation})>"
