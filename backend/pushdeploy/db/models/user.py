"""
User Model

Platform accounts. A user owns projects and may be invited to others.
"""

from sqlalchemy import Column, String, Index

from pushdeploy.db.base import Base, BaseModel


class User(Base, BaseModel):
    """
    User table

    The username doubles as the git username of the projects the user owns.
    """
    __tablename__ = "pd_user"

    username = Column(String(64), nullable=False, comment="Login name, unique")
    name = Column(String(255), nullable=True, comment="Display name")
    password_hash = Column(String(128), nullable=False, comment="bcrypt hash of the login password")

    __table_args__ = (
        Index("idx_user_username", "username", unique=True),
    )

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"
