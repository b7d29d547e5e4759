"""
Database Schemas

Pydantic models for request/response validation.
"""

from .user import UserRegister, UserLogin, UserResponse, TokenResponse
from .project import ProjectCreate, ProjectResponse, ProjectCreated, DashboardProject
from .build import BuildSummary, BuildDetail, ProjectStatus
from .environ import EnvVarSet, EnvVarDelete, EnvVarBulk, EnvVarResponse, EnvVarList
from .tree import TreeEntry, TreeResponse
from .share import InviteRequest, ShareResponse, MembersResponse
from .credential import GitCredentialsResponse

__all__ = [
    # User
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "TokenResponse",
    # Project
    "ProjectCreate",
    "ProjectResponse",
    "ProjectCreated",
    "DashboardProject",
    # Build
    "BuildSummary",
    "BuildDetail",
    "ProjectStatus",
    # Environment
    "EnvVarSet",
    "EnvVarDelete",
    "EnvVarBulk",
    "EnvVarResponse",
    "EnvVarList",
    # Tree
    "TreeEntry",
    "TreeResponse",
    # Share
    "InviteRequest",
    "ShareResponse",
    "MembersResponse",
    # Credentials
    "GitCredentialsResponse",
]
