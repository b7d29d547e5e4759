"""
Git Credential Repository
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from pushdeploy.db.models.git_credential import GitCredential
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class GitCredentialRepository(BaseRepository[GitCredential, dict]):
    """Git credential data access"""

    def __init__(self):
        super().__init__(GitCredential)

    @async_with_session
    async def get_by_project(self, session: AsyncSession, project_id: str) -> Optional[GitCredential]:
        return await self.get_one(session, {"project_id": project_id})

    @async_with_session
    async def create_credential(
        self,
        session: AsyncSession,
        project_id: str,
        username: str,
        password_hash: str,
    ) -> GitCredential:
        return await self.create(
            session,
            {"project_id": project_id, "username": username, "password_hash": password_hash, "generation": 1},
        )

    @async_with_session
    async def rotate(self, session: AsyncSession, project_id: str, password_hash: str) -> Optional[int]:
        """
        Overwrite the hash in place and bump the generation

        Returns:
            The new generation, or None when the project has no credential
        """
        result = await session.execute(
            update(GitCredential)
            .where(GitCredential.project_id == project_id)
            .values(password_hash=password_hash, generation=GitCredential.generation + 1)
        )
        if result.rowcount == 0:
            return None
        return await self._generation(session, project_id)

    @async_with_session
    async def get_generation(self, session: AsyncSession, project_id: str) -> Optional[int]:
        return await self._generation(session, project_id)

    async def _generation(self, session: AsyncSession, project_id: str) -> Optional[int]:
        stmt = select(GitCredential.generation).where(GitCredential.project_id == project_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
