"""
Project Repository

Data access layer - Project CRUD operations and access checks
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from pushdeploy.db.models.project import Project
from pushdeploy.db.models.project_share import ProjectShare
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class ProjectRepository(BaseRepository[Project, dict]):
    """Project repository with specialized queries"""

    def __init__(self):
        super().__init__(Project)

    @async_with_session
    async def get_project_by_id(self, session: AsyncSession, project_id: str) -> Optional[Project]:
        """Get project by ID"""
        return await self.get_by_id(session, project_id)

    @async_with_session
    async def get_project(self, session: AsyncSession, owner: str, name: str) -> Optional[Project]:
        """Get project by (owner username, project name)"""
        return await self.get_one(session, {"owner": owner.lower(), "name": name})

    @async_with_session
    async def get_by_slug(self, session: AsyncSession, slug: str) -> Optional[Project]:
        """Get the project whose hostname label is ``slug``"""
        return await self.get_one(session, {"slug": slug})

    @async_with_session
    async def create_project(self, session: AsyncSession, owner_id: str, owner: str, name: str, slug: str) -> Project:
        """Create a new project"""
        return await self.create(session, {"owner_id": owner_id, "owner": owner.lower(), "name": name, "slug": slug})

    @async_with_session
    async def delete_project(self, session: AsyncSession, project_id: str) -> bool:
        """Delete project; dependent rows go with it through ON DELETE CASCADE"""
        result = await session.execute(delete(Project).where(Project.id == project_id))
        return result.rowcount > 0

    @async_with_session
    async def list_owned(self, session: AsyncSession, owner_id: str) -> List[Project]:
        """Get all projects owned by a user"""
        return await self.get_multi(session, limit=1000, filters={"owner_id": owner_id}, order_by="-create_time")

    @async_with_session
    async def list_shared(self, session: AsyncSession, user_id: str) -> List[Project]:
        """Get all projects shared with a user"""
        stmt = (
            select(Project)
            .join(ProjectShare, ProjectShare.project_id == Project.id)
            .where(ProjectShare.user_id == user_id)
            .order_by(ProjectShare.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def list_all(self, session: AsyncSession) -> List[Project]:
        stmt = select(Project).order_by(Project.create_time)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def has_access(self, session: AsyncSession, project: Project, user_id: str) -> bool:
        """Owner or share member"""
        if project.owner_id == user_id:
            return True
        stmt = select(ProjectShare).where(
            ProjectShare.project_id == project.id,
            ProjectShare.user_id == user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None
