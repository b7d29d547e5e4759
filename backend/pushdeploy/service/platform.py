"""
Platform

Process-wide wiring of the long-lived components: repository storage,
credentials, the build orchestrator, the deployer and the terminal bridge.
Services and routers reach them through ``get_platform()``.
"""

import logging
from typing import Optional

from pushdeploy.core.builder import BuildOrchestrator, BuildStrategy, DockerfileStrategy
from pushdeploy.core.credentials import CredentialStore
from pushdeploy.core.deployer import Deployer, ReadinessProbe, RoutingTable, get_routing_table
from pushdeploy.core.docker_service import DockerService
from pushdeploy.core.git import RepositoryStore, TreeReader
from pushdeploy.core.terminal import TerminalBridge

logger = logging.getLogger(__name__)


class Platform:
    """Holds one instance of every stateful component"""

    def __init__(
        self,
        repositories: Optional[RepositoryStore] = None,
        docker: Optional[DockerService] = None,
        strategy: Optional[BuildStrategy] = None,
        probe: Optional[ReadinessProbe] = None,
        routing: Optional[RoutingTable] = None,
        terminals: Optional[TerminalBridge] = None,
        **orchestrator_options,
    ):
        self.repositories = repositories or RepositoryStore()
        self.credentials = CredentialStore()
        self.tree_reader = TreeReader()
        self.routing = routing or get_routing_table()
        self.terminals = terminals or TerminalBridge()
        self.deployer = Deployer(
            docker=docker,
            probe=probe,
            routing=self.routing,
            on_replaced=self.terminals.close_project,
        )
        if strategy is None and docker is not None:
            strategy = DockerfileStrategy(docker=docker)
        self.orchestrator = BuildOrchestrator(
            repositories=self.repositories,
            strategy=strategy,
            release=self.deployer.release,
            **orchestrator_options,
        )

    async def start(self) -> None:
        """Restore routes and settle builds left by a previous process"""
        routes = await self.deployer.warmup()
        requeued = await self.orchestrator.recover()
        logger.info(f"Platform started: {routes} routes restored, {requeued} builds re-queued")

    async def stop(self) -> None:
        await self.orchestrator.shutdown()
        await self.terminals.shutdown()
        logger.info("Platform stopped")


_platform: Optional[Platform] = None


def get_platform() -> Platform:
    global _platform
    if _platform is None:
        _platform = Platform()
    return _platform


def set_platform(platform: Optional[Platform]) -> None:
    """Replace the process-wide platform (tests install one with fakes)"""
    global _platform
    _platform = platform
