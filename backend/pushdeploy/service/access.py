"""
Project access checks shared by the services.

A project is visible to its owner and to the users it is shared with;
management operations are reserved to the owner.
"""

import logging

from pushdeploy.db.models.project import Project
from pushdeploy.db.repository import ProjectRepository
from pushdeploy.utils.exceptions import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)


class ProjectAccess:

    def __init__(self, project_repo: ProjectRepository = None):
        self.project_repo = project_repo or ProjectRepository()

    async def resolve(self, owner: str, name: str) -> Project:
        project = await self.project_repo.get_project(owner, name)
        if project is None:
            raise NotFoundError(f"Project {owner}/{name} not found", resource_type="project")
        return project

    async def require_member(self, owner: str, name: str, user_id: str) -> Project:
        """Owner or share member, else AccessDeniedError"""
        project = await self.resolve(owner, name)
        if not await self.project_repo.has_access(project, user_id):
            logger.info(f"User {user_id} denied access to {project.full_name}")
            raise AccessDeniedError(f"You do not have access to {project.full_name}")
        return project

    async def require_owner(self, owner: str, name: str, user_id: str) -> Project:
        project = await self.resolve(owner, name)
        if project.owner_id != user_id:
            logger.info(f"User {user_id} is not the owner of {project.full_name}")
            raise AccessDeniedError(f"Only the owner can manage {project.full_name}")
        return project
