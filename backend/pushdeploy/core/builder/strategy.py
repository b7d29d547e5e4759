"""
Build strategies

A strategy turns a checked-out source tree into a runnable artifact. The
orchestrator only knows this interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pushdeploy.config.settings import BuildConfig
from pushdeploy.core.builder.log_buffer import BuildLog
from pushdeploy.core.docker_service import DockerService, ImageBuildError, get_docker_service
from pushdeploy.utils.exceptions import BuildFailure

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """What a strategy gets to work with"""
    build_id: str
    owner: str
    project: str
    slug: str
    commit_sha: str
    source_dir: Path


@dataclass
class BuildArtifact:
    """What a successful build hands to the deployer"""
    image_tag: str


class BuildStrategy(ABC):
    """
    Abstract base class for build strategies.

    Strategies are responsible for:
    - Validating the source tree
    - Producing an artifact the deployer can start
    - Writing progress into the build log
    """

    @abstractmethod
    async def build(self, context: BuildContext, log: BuildLog) -> BuildArtifact:
        """
        Build the artifact.

        Raises:
            BuildFailure: With a diagnostic for the build log
        """
        pass

    async def discard(self, artifact: BuildArtifact) -> None:
        """Release an artifact that will never be deployed."""
        pass


class DockerfileStrategy(BuildStrategy):
    """Build the Dockerfile at the repository root with the docker daemon"""

    def __init__(self, docker: Optional[DockerService] = None, dockerfile: str = "Dockerfile"):
        self._docker = docker
        self.dockerfile = dockerfile

    @property
    def docker(self) -> DockerService:
        return self._docker or get_docker_service()

    @staticmethod
    def image_tag(context: BuildContext) -> str:
        return f"{BuildConfig.IMAGE_PREFIX}/{context.slug}:{context.build_id}"

    async def build(self, context: BuildContext, log: BuildLog) -> BuildArtifact:
        if not (context.source_dir / self.dockerfile).is_file():
            raise BuildFailure(f"No {self.dockerfile} found at the repository root")

        tag = self.image_tag(context)
        log.stamp(f"Building image {tag}")
        try:
            async for line in self.docker.build_image(
                str(context.source_dir),
                tag,
                labels={
                    "pushdeploy.project": f"{context.owner}/{context.project}",
                    "pushdeploy.build": context.build_id,
                    "pushdeploy.commit": context.commit_sha,
                },
                dockerfile=self.dockerfile,
            ):
                log.append(line)
        except ImageBuildError as e:
            raise BuildFailure(f"Image build failed: {e.message}")

        return BuildArtifact(image_tag=tag)

    async def discard(self, artifact: BuildArtifact) -> None:
        await self.docker.remove_image(artifact.image_tag)
