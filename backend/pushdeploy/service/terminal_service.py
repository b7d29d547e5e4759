"""
Terminal Service

Admits terminal WebSockets: the caller must be the project owner or a
member, and the project must have an active deployment to attach to.
"""

import logging
from typing import Optional

from fastapi import WebSocket

from pushdeploy.core.docker_service import DockerError
from pushdeploy.core.terminal import CLOSE_FORBIDDEN, CLOSE_NO_DEPLOYMENT
from pushdeploy.db.repository import DeploymentRepository, ProjectRepository
from pushdeploy.service.access import ProjectAccess
from pushdeploy.service.platform import Platform, get_platform
from pushdeploy.utils.auth.dependencies import get_websocket_user_id
from pushdeploy.utils.exceptions import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)

CLOSE_INTERNAL_ERROR = 1011


class TerminalService:

    def __init__(self, platform: Optional[Platform] = None):
        self._platform = platform
        self.deployment_repo = DeploymentRepository()
        self.access = ProjectAccess(ProjectRepository())

    @property
    def platform(self) -> Platform:
        return self._platform or get_platform()

    async def connect(self, websocket: WebSocket, owner: str, name: str) -> int:
        """
        Accept the socket and run a terminal session on it

        Rejections are reported through the close code, which needs an
        accepted socket.

        Returns:
            The close code the connection ended with
        """
        await websocket.accept()

        user_id = get_websocket_user_id(websocket)
        if not user_id:
            await websocket.close(code=CLOSE_FORBIDDEN, reason="authentication required")
            return CLOSE_FORBIDDEN

        try:
            project = await self.access.require_member(owner, name, user_id)
        except (NotFoundError, AccessDeniedError) as e:
            await websocket.close(code=CLOSE_FORBIDDEN, reason=e.message)
            return CLOSE_FORBIDDEN

        epoch = self.platform.terminals.epoch(project.id)
        deployment = await self.deployment_repo.get_active(project.id)
        if deployment is None:
            await websocket.close(code=CLOSE_NO_DEPLOYMENT, reason="no active deployment")
            return CLOSE_NO_DEPLOYMENT

        try:
            return await self.platform.terminals.attach(websocket, deployment, epoch)
        except DockerError as e:
            logger.error(f"Terminal for {project.full_name} could not start: {e.message}")
            await websocket.close(code=CLOSE_INTERNAL_ERROR, reason="terminal unavailable")
            return CLOSE_INTERNAL_ERROR
