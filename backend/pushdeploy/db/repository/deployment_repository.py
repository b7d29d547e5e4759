"""
Deployment Repository
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from pushdeploy.db.models.deployment import Deployment, DeploymentStatus
from pushdeploy.db.repository.base_repository import BaseRepository
from pushdeploy.db.session import async_with_session


class DeploymentRepository(BaseRepository[Deployment, dict]):
    """Deployment data access"""

    def __init__(self):
        super().__init__(Deployment)

    @async_with_session
    async def get_active(self, session: AsyncSession, project_id: str) -> Optional[Deployment]:
        return await self.get_one(session, {"project_id": project_id, "status": DeploymentStatus.ACTIVE})

    @async_with_session
    async def get_deployment(self, session: AsyncSession, deployment_id: str) -> Optional[Deployment]:
        return await self.get_by_id(session, deployment_id)

    @async_with_session
    async def list_active(self, session: AsyncSession) -> List[Deployment]:
        stmt = select(Deployment).where(Deployment.status == DeploymentStatus.ACTIVE)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @async_with_session
    async def create_deployment(self, session: AsyncSession, **values) -> Deployment:
        values.setdefault("status", DeploymentStatus.STARTING)
        return await self.create(session, values)

    @async_with_session
    async def update_deployment(self, session: AsyncSession, deployment_id: str, **values) -> None:
        await session.execute(update(Deployment).where(Deployment.id == deployment_id).values(**values))

    @async_with_session
    async def activate(self, session: AsyncSession, project_id: str, deployment_id: str) -> bool:
        """
        Promote a STARTING ``deployment_id`` and retire the current ACTIVE row in one transaction

        Returns:
            False when the deployment is no longer STARTING or no longer exists
        """
        now = datetime.utcnow()
        promoted = await session.execute(
            update(Deployment)
            .where(Deployment.id == deployment_id, Deployment.status == DeploymentStatus.STARTING)
            .values(status=DeploymentStatus.ACTIVE, activated_at=now)
        )
        if promoted.rowcount == 0:
            return False
        await session.execute(
            update(Deployment)
            .where(
                Deployment.project_id == project_id,
                Deployment.status == DeploymentStatus.ACTIVE,
                Deployment.id != deployment_id,
            )
            .values(status=DeploymentStatus.RETIRED, retired_at=now)
        )
        return True

    @async_with_session
    async def fail_starting(self, session: AsyncSession, project_id: str, message: str) -> int:
        """Fail every STARTING deployment of a project so none of them can be promoted"""
        result = await session.execute(
            update(Deployment)
            .where(Deployment.project_id == project_id, Deployment.status == DeploymentStatus.STARTING)
            .values(status=DeploymentStatus.FAILED, error_message=message)
        )
        return result.rowcount

    @async_with_session
    async def retire_active(self, session: AsyncSession, project_id: str) -> None:
        await session.execute(
            update(Deployment)
            .where(Deployment.project_id == project_id, Deployment.status == DeploymentStatus.ACTIVE)
            .values(status=DeploymentStatus.RETIRED, retired_at=datetime.utcnow())
        )
