"""
User Repository

Data access layer - User lookups and registration
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from pushdeploy.db.models.user import User
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class UserRepository(BaseRepository[User, dict]):
    """User repository"""

    def __init__(self):
        super().__init__(User)

    @async_with_session
    async def get_user(self, session: AsyncSession, user_id: str) -> Optional[User]:
        return await self.get_by_id(session, user_id)

    @async_with_session
    async def get_by_username(self, session: AsyncSession, username: str) -> Optional[User]:
        return await self.get_one(session, {"username": username.lower()})

    @async_with_session
    async def create_user(
        self,
        session: AsyncSession,
        username: str,
        password_hash: str,
        name: Optional[str] = None,
    ) -> User:
        return await self.create(
            session,
            {"username": username.lower(), "name": name or username, "password_hash": password_hash},
        )
