"""
Build Repository

Status transitions are conditional updates so a terminal state can never be
overwritten.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from pushdeploy.db.models.build import Build, BuildStatus
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class BuildRepository(BaseRepository[Build, dict]):
    """Build data access"""

    def __init__(self):
        super().__init__(Build)

    @async_with_session
    async def create_build(self, session: AsyncSession, project_id: str, commit_sha: str, ref: str) -> Build:
        return await self.create(
            session,
            {"project_id": project_id, "commit_sha": commit_sha, "ref": ref, "status": BuildStatus.QUEUED, "log": ""},
        )

    @async_with_session
    async def get_build(self, session: AsyncSession, build_id: str) -> Optional[Build]:
        return await self.get_by_id(session, build_id)

    @async_with_session
    async def list_builds(self, session: AsyncSession, project_id: str, limit: int = 50) -> List[Build]:
        """Newest first"""
        stmt = (
            select(Build)
            .where(Build.project_id == project_id)
            .order_by(Build.create_time.desc(), Build.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def latest_build(self, session: AsyncSession, project_id: str) -> Optional[Build]:
        stmt = (
            select(Build)
            .where(Build.project_id == project_id)
            .order_by(Build.create_time.desc(), Build.id.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @async_with_session
    async def list_by_status(self, session: AsyncSession, statuses: Sequence[BuildStatus]) -> List[Build]:
        """Oldest first"""
        stmt = select(Build).where(Build.status.in_(list(statuses))).order_by(Build.create_time, Build.id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def count_pending(self, session: AsyncSession, project_id: str) -> int:
        stmt = select(func.count()).select_from(Build).where(
            Build.project_id == project_id,
            Build.status.in_([BuildStatus.QUEUED, BuildStatus.BUILDING]),
        )
        result = await session.execute(stmt)
        return result.scalar() or 0

    @async_with_session
    async def transition(
        self,
        session: AsyncSession,
        build_id: str,
        expected: BuildStatus,
        target: BuildStatus,
        **values,
    ) -> bool:
        """
        Move a build from ``expected`` to ``target``

        Returns:
            False if the build was not in ``expected`` (nothing is written)
        """
        now = datetime.utcnow()
        if target == BuildStatus.BUILDING:
            values.setdefault("started_at", now)
        if target.is_terminal:
            values.setdefault("finished_at", now)

        result = await session.execute(
            update(Build)
            .where(Build.id == build_id, Build.status == expected)
            .values(status=target, update_time=now, **values)
        )
        return result.rowcount == 1

    @async_with_session
    async def save_log(self, session: AsyncSession, build_id: str, log: str) -> None:
        await session.execute(update(Build).where(Build.id == build_id).values(log=log))
