"""
Project Share Repository
"""

from typing import List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from pushdeploy.db.models.project_share import ProjectShare
from pushdeploy.db.models.user import User
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class ShareRepository(BaseRepository[ProjectShare, dict]):
    """Project membership data access"""

    def __init__(self):
        super().__init__(ProjectShare)

    @async_with_session
    async def list_members(self, session: AsyncSession, project_id: str) -> List[Tuple[ProjectShare, User]]:
        stmt = (
            select(ProjectShare, User)
            .join(User, User.id == ProjectShare.user_id)
            .where(ProjectShare.project_id == project_id)
            .order_by(ProjectShare.created_at)
        )
        result = await session.execute(stmt)
        return [(share, user) for share, user in result.all()]

    @async_with_session
    async def add_member(self, session: AsyncSession, project_id: str, user_id: str) -> bool:
        """
        Share a project with a user

        Returns:
            False when the share already existed
        """
        existing = await self.get_one(session, {"project_id": project_id, "user_id": user_id})
        if existing:
            return False
        try:
            await self.create(session, {"project_id": project_id, "user_id": user_id})
        except IntegrityError:
            # a concurrent invite inserted the same row first
            await session.rollback()
            return False
        return True

    @async_with_session
    async def remove_member(self, session: AsyncSession, project_id: str, user_id: str) -> bool:
        result = await session.execute(
            delete(ProjectShare).where(ProjectShare.project_id == project_id, ProjectShare.user_id == user_id)
        )
        return result.rowcount > 0
