"""
Environment Variable Repository
"""

from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from pushdeploy.db.models.environ import EnvironmentVariable
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class EnvironRepository(BaseRepository[EnvironmentVariable, dict]):
    """Per-project environment variables"""

    def __init__(self):
        super().__init__(EnvironmentVariable)

    @async_with_session
    async def list_vars(self, session: AsyncSession, project_id: str) -> List[EnvironmentVariable]:
        stmt = (
            select(EnvironmentVariable)
            .where(EnvironmentVariable.project_id == project_id)
            .order_by(EnvironmentVariable.key)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def as_dict(self, session: AsyncSession, project_id: str) -> Dict[str, str]:
        stmt = select(EnvironmentVariable.key, EnvironmentVariable.value).where(
            EnvironmentVariable.project_id == project_id
        )
        result = await session.execute(stmt)
        return {key: value for key, value in result.all()}

    @async_with_session
    async def set_var(self, session: AsyncSession, project_id: str, key: str, value: str) -> EnvironmentVariable:
        existing = await self.get_one(session, {"project_id": project_id, "key": key})
        if existing:
            return await self.update(session, existing, value=value)
        return await self.create(session, {"project_id": project_id, "key": key, "value": value})

    @async_with_session
    async def delete_var(self, session: AsyncSession, project_id: str, key: str) -> bool:
        result = await session.execute(
            delete(EnvironmentVariable).where(
                EnvironmentVariable.project_id == project_id,
                EnvironmentVariable.key == key,
            )
        )
        return result.rowcount > 0

    @async_with_session
    async def replace_all(self, session: AsyncSession, project_id: str, variables: Dict[str, str]) -> None:
        await session.execute(delete(EnvironmentVariable).where(EnvironmentVariable.project_id == project_id))
        for key, value in variables.items():
            session.add(EnvironmentVariable(project_id=project_id, key=key, value=value))
        await session.flush()
