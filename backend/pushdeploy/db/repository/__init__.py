"""
Database Repositories

Repository pattern implementation for data access.
"""

from .base_repository import BaseRepository
from .user_repository import UserRepository
from .project_repository import ProjectRepository
from .git_credential_repository import GitCredentialRepository
from .build_repository import BuildRepository
from .deployment_repository import DeploymentRepository
from .share_repository import ShareRepository
from .environ_repository import EnvironRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ProjectRepository",
    "GitCredentialRepository",
    "BuildRepository",
    "DeploymentRepository",
    "ShareRepository",
    "EnvironRepository",
]
