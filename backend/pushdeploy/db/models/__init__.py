"""
Database Models

SQLAlchemy ORM models for the application.
"""

from .user import User
from .project import Project
from .git_credential import GitCredential
from .build import Build, BuildStatus
from .deployment import Deployment, DeploymentStatus
from .project_share import ProjectShare
from .environ import EnvironmentVariable

__all__ = [
    "User",
    "Project",
    "GitCredential",
    "Build",
    "BuildStatus",
    "Deployment",
    "DeploymentStatus",
    "ProjectShare",
    "EnvironmentVariable",
]
