"""Docker image and container operations used by builds, releases and terminals."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import wraps
from typing import Optional, Dict, Any, AsyncIterator, Callable

import docker
from docker.models.containers import Container
from docker.errors import NotFound, APIError, BuildError, DockerException

from pushdeploy.config.settings import DeployConfig

logger = logging.getLogger(__name__)

# Label put on everything this service creates
MANAGED_LABEL = "pushdeploy.managed"


class ContainerStatus(str, Enum):
    """Container status enum."""
    RUNNING = "running"
    CREATED = "created"
    RESTARTING = "restarting"
    EXITED = "exited"
    PAUSED = "paused"
    DEAD = "dead"
    UNKNOWN = "unknown"


class DockerError(Exception):
    """Base exception for Docker operations."""

    def __init__(self, message: str, operation: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details or {}


class ContainerNotFoundError(DockerError):
    """Exception when container is not found."""
    pass


class ImageBuildError(DockerError):
    """The daemon reported an error while building an image."""
    pass


@dataclass
class ContainerInfo:
    """Container information."""
    id: str
    name: str
    status: ContainerStatus
    host: Optional[str] = None
    port: Optional[int] = None
    labels: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_container(cls, container: Container, internal_port: int, network: str = "") -> "ContainerInfo":
        """Create ContainerInfo from Docker container, resolving its reachable address."""
        try:
            status = ContainerStatus(container.status)
        except ValueError:
            status = ContainerStatus.UNKNOWN

        attrs = container.attrs or {}
        created_at = None
        created = attrs.get("Created")
        if created:
            try:
                created_at = datetime.fromisoformat(created[:26].rstrip("Z"))
            except ValueError:
                logger.debug(f"Unparseable creation time for {container.name}: {created}")

        host, port = None, None
        if network:
            # Reachable by name on the shared network
            host, port = container.name, internal_port
        else:
            bindings = (attrs.get("NetworkSettings", {}).get("Ports") or {}).get(f"{internal_port}/tcp") or []
            if bindings:
                host = "127.0.0.1"
                port = int(bindings[0]["HostPort"])

        return cls(
            id=container.id,
            name=container.name,
            status=status,
            host=host,
            port=port,
            labels=dict(attrs.get("Config", {}).get("Labels") or {}),
            created_at=created_at,
        )


@dataclass
class RunSpec:
    """Configuration for starting a runtime container."""
    image: str
    name: str
    environment: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    internal_port: int = field(default_factory=lambda: DeployConfig.CONTAINER_PORT)
    network: str = field(default_factory=lambda: DeployConfig.NETWORK)
    memory_limit: str = field(default_factory=lambda: DeployConfig.MEMORY_LIMIT)
    cpu_count: float = field(default_factory=lambda: DeployConfig.CPU_COUNT)


def docker_operation(operation_name: str):
    """Decorator for Docker operations with error handling."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except DockerError:
                raise
            except NotFound as e:
                raise ContainerNotFoundError(message=str(e), operation=operation_name)
            except BuildError as e:
                raise ImageBuildError(message=str(e.msg), operation=operation_name)
            except APIError as e:
                raise DockerError(
                    message=str(e),
                    operation=operation_name,
                    details={"status_code": getattr(e, "status_code", None)},
                )
            except DockerException as e:
                raise DockerError(message=str(e), operation=operation_name)
        return wrapper
    return decorator


class DockerService:
    """Thin async wrapper over the docker SDK; every call runs in a worker thread."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        """Get Docker client, creating if needed."""
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    async def build_image(
        self,
        context_path: str,
        tag: str,
        labels: Optional[Dict[str, str]] = None,
        dockerfile: str = "Dockerfile",
    ) -> AsyncIterator[str]:
        """
        Build an image, yielding output lines as the daemon emits them.

        Raises:
            ImageBuildError: When the daemon reports a build error
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        done = object()

        def _run():
            try:
                stream = self.client.api.build(
                    path=context_path,
                    dockerfile=dockerfile,
                    tag=tag,
                    labels={MANAGED_LABEL: "true", **(labels or {})},
                    rm=True,
                    forcerm=True,
                    decode=True,
                )
                for chunk in stream:
                    loop.call_soon_threadsafe(queue.put_nowait, chunk)
            except (APIError, DockerException) as e:
                loop.call_soon_threadsafe(queue.put_nowait, {"error": str(e)})
            finally:
                loop.call_soon_threadsafe(queue.put_nowait, done)

        # The thread cannot be interrupted; a cancelled consumer leaves it to finish on its own
        worker = asyncio.create_task(asyncio.to_thread(_run))
        error = None
        while True:
            chunk = await queue.get()
            if chunk is done:
                break
            if "error" in chunk:
                error = chunk.get("errorDetail", {}).get("message") or chunk["error"]
                yield error.rstrip("\n")
                continue
            text = chunk.get("stream") or chunk.get("status")
            if text:
                for line in text.splitlines():
                    if line.strip():
                        yield line
        await worker

        if error:
            raise ImageBuildError(message=error, operation="build_image")

    @docker_operation("remove_image")
    async def remove_image(self, tag: str) -> None:
        try:
            await asyncio.to_thread(self.client.images.remove, tag, force=True)
        except NotFound:
            logger.debug(f"Image {tag} already gone")

    @docker_operation("run_container")
    async def run_container(self, spec: RunSpec) -> ContainerInfo:
        """Start a detached container and return its reachable address."""
        container = await asyncio.to_thread(self._run_container, spec)
        return ContainerInfo.from_container(container, spec.internal_port, spec.network)

    def _run_container(self, spec: RunSpec) -> Container:
        """Run Docker container (sync helper)."""
        try:
            stale = self.client.containers.get(spec.name)
            logger.warning(f"Removing stale container {spec.name}")
            stale.remove(force=True)
        except NotFound:
            pass

        kwargs: Dict[str, Any] = dict(
            image=spec.image,
            name=spec.name,
            detach=True,
            environment=spec.environment,
            labels={MANAGED_LABEL: "true", **spec.labels},
            mem_limit=spec.memory_limit,
            nano_cpus=int(float(spec.cpu_count) * 1_000_000_000),
            restart_policy={"Name": "unless-stopped"},
        )
        if spec.network:
            kwargs["network"] = spec.network
        else:
            kwargs["ports"] = {f"{spec.internal_port}/tcp": ("127.0.0.1", None)}

        container = self.client.containers.run(**kwargs)
        container.reload()
        return container

    @docker_operation("remove_container")
    async def remove_container(self, name_or_id: str, timeout: int = 10) -> bool:
        """Stop and remove a container. Returns False if it did not exist."""
        def _remove():
            try:
                container = self.client.containers.get(name_or_id)
            except NotFound:
                return False
            try:
                container.stop(timeout=timeout)
            except APIError as e:
                logger.warning(f"Stopping {name_or_id} failed, forcing removal: {e}")
            container.remove(force=True)
            return True

        return await asyncio.to_thread(_remove)

    @docker_operation("exec_shell")
    async def open_exec(self, container_id: str, command: list, environment: Dict[str, str] = None):
        """
        Start an interactive exec with stdin attached.

        Returns:
            (exec_id, socket) where socket is the raw duplex stream
        """
        def _open():
            exec_id = self.client.api.exec_create(
                container_id,
                command,
                stdin=True,
                tty=True,
                environment=environment,
            )["Id"]
            sock = self.client.api.exec_start(exec_id, socket=True, tty=True)
            return exec_id, getattr(sock, "_sock", sock)

        return await asyncio.to_thread(_open)


_docker_service: Optional[DockerService] = None


def get_docker_service() -> DockerService:
    """Get or create the process-wide docker service."""
    global _docker_service
    if _docker_service is None:
        _docker_service = DockerService()
    return _docker_service


def set_docker_service(service: Optional[DockerService]) -> None:
    """Replace the process-wide docker service (tests inject a fake client)."""
    global _docker_service
    _docker_service = service


__all__ = [
    "ContainerStatus",
    "DockerError",
    "ContainerNotFoundError",
    "ImageBuildError",
    "ContainerInfo",
    "RunSpec",
    "docker_operation",
    "DockerService",
    "get_docker_service",
    "set_docker_service",
    "MANAGED_LABEL",
]
