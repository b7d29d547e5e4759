"""
Services Module

Business logic layer between the routers and the core components
"""

from .platform import Platform, get_platform, set_platform
from .access import ProjectAccess
from .auth_service import AuthService
from .project_service import ProjectService
from .share_service import ShareService
from .git_service import GitService
from .terminal_service import TerminalService

__all__ = [
    "Platform",
    "get_platform",
    "set_platform",
    "ProjectAccess",
    "AuthService",
    "ProjectService",
    "ShareService",
    "GitService",
    "TerminalService",
]
