"""
Deployer

Starts a successful build as a new instance, waits for it to become ready
and only then swaps it in for the current one. A failed release leaves the
active deployment untouched.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from pushdeploy.core.deployer.probe import ReadinessProbe
from pushdeploy.core.deployer.routing import Route, RoutingTable, get_routing_table, hostname_for
from pushdeploy.core.docker_service import DockerError, DockerService, RunSpec, get_docker_service
from pushdeploy.config.settings import DeployConfig
from pushdeploy.db.models.build import Build
from pushdeploy.db.models.deployment import Deployment, DeploymentStatus
from pushdeploy.db.models.project import Project
from pushdeploy.db.repository import DeploymentRepository, EnvironRepository
from pushdeploy.utils.exceptions import ReleaseTimeoutError

logger = logging.getLogger(__name__)

# Called with the project id after the active deployment changed
ReplacedHook = Callable[[str], Awaitable[None]]


class Deployer:
    """Release builds and own the active-deployment pointer"""

    def __init__(
        self,
        docker: Optional[DockerService] = None,
        probe: Optional[ReadinessProbe] = None,
        routing: Optional[RoutingTable] = None,
        deployment_repo: Optional[DeploymentRepository] = None,
        environ_repo: Optional[EnvironRepository] = None,
        on_replaced: Optional[ReplacedHook] = None,
    ):
        self._docker = docker
        self.probe = probe or ReadinessProbe()
        self.routing = routing or get_routing_table()
        self.deployment_repo = deployment_repo or DeploymentRepository()
        self.environ_repo = environ_repo or EnvironRepository()
        self.on_replaced = on_replaced
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def docker(self) -> DockerService:
        return self._docker or get_docker_service()

    def _lock(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = self._locks[project_id] = asyncio.Lock()
        return lock

    async def release(self, project: Project, build: Build) -> Optional[Deployment]:
        """
        Deploy ``build`` and make it the project's active deployment

        Returns None when the project was torn down while the new instance
        was starting; the instance is removed again and no route is set.

        Raises:
            ReleaseTimeoutError: The new instance never became ready
            DockerError: The new instance could not be started
        """
        hostname = hostname_for(project.slug)
        container_name = f"{project.slug}-{build.id[:8]}"
        environment = await self.environ_repo.as_dict(project.id)
        environment.setdefault("PORT", str(DeployConfig.CONTAINER_PORT))

        deployment = await self.deployment_repo.create_deployment(
            project_id=project.id,
            build_id=build.id,
            container_name=container_name,
            hostname=hostname,
        )

        try:
            info = await self.docker.run_container(RunSpec(
                image=build.image_tag,
                name=container_name,
                environment=environment,
                labels={
                    "pushdeploy.project": project.full_name,
                    "pushdeploy.project_id": project.id,
                    "pushdeploy.build": build.id,
                    "pushdeploy.deployment": deployment.id,
                },
            ))
        except DockerError as e:
            await self.deployment_repo.update_deployment(
                deployment.id, status=DeploymentStatus.FAILED, error_message=e.message[:2000]
            )
            raise
        except asyncio.CancelledError:
            await self._discard(container_name)
            raise

        await self.deployment_repo.update_deployment(
            deployment.id, container_id=info.id, host=info.host, port=info.port
        )
        address = f"http://{info.host}:{info.port}"

        try:
            attempts = await self.probe.wait_ready(address)
        except asyncio.CancelledError:
            await self._discard(info.id)
            raise
        if not attempts:
            await self._discard(info.id)
            message = f"{container_name} did not become ready within {self.probe.timeout}s"
            await self.deployment_repo.update_deployment(
                deployment.id, status=DeploymentStatus.FAILED, error_message=message
            )
            raise ReleaseTimeoutError(message, attempts=self.probe.max_attempts)

        async with self._lock(project.id):
            previous = await self.deployment_repo.get_active(project.id)
            activated = await self.deployment_repo.activate(project.id, deployment.id)
            if activated:
                self.routing.set(Route(
                    project_id=project.id,
                    hostname=hostname,
                    deployment_id=deployment.id,
                    host=info.host,
                    port=info.port,
                ))
                if previous is not None and self.on_replaced is not None:
                    await self.on_replaced(project.id)

        if not activated:
            await self._discard(info.id)
            logger.warning(f"Release of build {build.id} abandoned, {project.full_name} was torn down")
            return None
        if previous is not None:
            await self._discard(previous.container_id or previous.container_name)
        logger.info(f"{project.full_name} now serves build {build.id} at {hostname}")
        return await self.deployment_repo.get_deployment(deployment.id)

    async def teardown(self, project: Project) -> None:
        """Stop the active instance and drop the route"""
        async with self._lock(project.id):
            active = await self.deployment_repo.get_active(project.id)
            await self.deployment_repo.retire_active(project.id)
            await self.deployment_repo.fail_starting(project.id, "Project torn down during release")
            self.routing.remove_project(project.id)
            if active is not None and self.on_replaced is not None:
                await self.on_replaced(project.id)
        if active is not None:
            await self._discard(active.container_id or active.container_name)
        self._locks.pop(project.id, None)

    async def warmup(self) -> int:
        """Rebuild the routing table from the ACTIVE deployments"""
        count = 0
        for deployment in await self.deployment_repo.list_active():
            if deployment.host and deployment.port:
                self.routing.set(Route(
                    project_id=deployment.project_id,
                    hostname=deployment.hostname,
                    deployment_id=deployment.id,
                    host=deployment.host,
                    port=deployment.port,
                ))
                count += 1
        return count

    async def _discard(self, name_or_id: Optional[str]) -> None:
        if not name_or_id:
            return
        try:
            await self.docker.remove_container(name_or_id)
        except DockerError as e:
            logger.error(f"Could not remove container {name_or_id}: {e.message}")
