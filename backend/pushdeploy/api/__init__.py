"""
API Routers Module

FastAPI routers; business logic stays in the service layer
"""

from .auth_router import auth_router
from .project_router import project_router
from .owner_router import owner_router
from .dashboard_router import dashboard_router
from .terminal_router import terminal_router
from .git_router import git_router
from .health_router import health_router

__all__ = [
    "auth_router",
    "project_router",
    "owner_router",
    "dashboard_router",
    "terminal_router",
    "git_router",
    "health_router",
]
