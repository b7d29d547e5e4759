"""Tests for Docker service."""

import pytest
from datetime import datetime
from unittest.mock import MagicMock

from docker.errors import APIError, NotFound

from pushdeploy.core.docker_service import (
    MANAGED_LABEL,
    ContainerInfo,
    ContainerNotFoundError,
    ContainerStatus,
    DockerError,
    DockerService,
    ImageBuildError,
    RunSpec,
    docker_operation,
)


def make_container(status="running", attrs=None, name="alice-site-1234abcd"):
    container = MagicMock()
    container.id = "abc123"
    container.name = name
    container.status = status
    container.attrs = attrs if attrs is not None else {}
    return container


class TestContainerInfo:
    """Tests for ContainerInfo dataclass."""

    def test_from_container_on_network(self):
        """Containers on the shared network are reached by name."""
        container = make_container(attrs={
            "Created": "2024-01-01T00:00:00.000000Z",
            "Config": {"Labels": {"pushdeploy.project": "alice/site"}},
        })

        info = ContainerInfo.from_container(container, 8000, network="pushdeploy")

        assert info.id == "abc123"
        assert info.status == ContainerStatus.RUNNING
        assert (info.host, info.port) == ("alice-site-1234abcd", 8000)
        assert info.labels == {"pushdeploy.project": "alice/site"}
        assert info.created_at == datetime(2024, 1, 1)

    def test_from_container_published_port(self):
        """Without a network the published loopback port is used."""
        container = make_container(attrs={
            "NetworkSettings": {"Ports": {"80/tcp": [{"HostIp": "127.0.0.1", "HostPort": "49153"}]}},
        })

        info = ContainerInfo.from_container(container, 80)

        assert (info.host, info.port) == ("127.0.0.1", 49153)

    def test_from_container_unknown_status(self):
        """Test handling unknown status."""
        info = ContainerInfo.from_container(make_container(status="weird"), 80)

        assert info.status == ContainerStatus.UNKNOWN
        assert info.host is None


class TestDockerOperation:
    """The decorator maps SDK errors onto DockerError."""

    async def test_not_found(self):
        @docker_operation("inspect")
        async def op():
            raise NotFound("no such container")

        with pytest.raises(ContainerNotFoundError) as exc:
            await op()
        assert exc.value.operation == "inspect"

    async def test_api_error_keeps_status(self):
        response = MagicMock(status_code=409)

        @docker_operation("run_container")
        async def op():
            raise APIError("conflict", response=response)

        with pytest.raises(DockerError) as exc:
            await op()
        assert exc.value.details["status_code"] == 409


class TestDockerService:
    """Tests for DockerService class."""

    async def test_run_container_on_network(self):
        """The stale container is replaced and the new one is labelled."""
        client = MagicMock()
        stale = MagicMock()
        client.containers.get.return_value = stale
        client.containers.run.return_value = make_container()
        service = DockerService(client=client)

        info = await service.run_container(RunSpec(
            image="pushdeploy/alice-site:1",
            name="alice-site-1234abcd",
            environment={"PORT": "80"},
            labels={"pushdeploy.build": "1"},
            internal_port=80,
            network="pushdeploy",
            memory_limit="256m",
            cpu_count=0.5,
        ))

        stale.remove.assert_called_once_with(force=True)
        kwargs = client.containers.run.call_args.kwargs
        assert kwargs["detach"] is True
        assert kwargs["network"] == "pushdeploy"
        assert kwargs["nano_cpus"] == 500_000_000
        assert kwargs["labels"] == {MANAGED_LABEL: "true", "pushdeploy.build": "1"}
        assert "ports" not in kwargs
        assert (info.host, info.port) == ("alice-site-1234abcd", 80)

    async def test_run_container_publishes_port(self):
        client = MagicMock()
        client.containers.get.side_effect = NotFound("none")
        client.containers.run.return_value = make_container()
        service = DockerService(client=client)

        await service.run_container(RunSpec(image="img", name="n", internal_port=80, network=""))

        assert client.containers.run.call_args.kwargs["ports"] == {"80/tcp": ("127.0.0.1", None)}

    async def test_remove_missing_container(self):
        client = MagicMock()
        client.containers.get.side_effect = NotFound("none")
        service = DockerService(client=client)

        assert await service.remove_container("gone") is False

    async def test_remove_container_forces_after_stop_error(self):
        client = MagicMock()
        container = client.containers.get.return_value
        container.stop.side_effect = APIError("stuck")
        service = DockerService(client=client)

        assert await service.remove_container("c1") is True
        container.remove.assert_called_once_with(force=True)

    async def test_build_image_streams_lines(self):
        client = MagicMock()
        client.api.build.return_value = iter([
            {"stream": "Step 1/2 : FROM python\n"},
            {"status": "Pulling fs layer"},
            {"stream": "\n"},
            {"stream": "Successfully built 123\n"},
        ])
        service = DockerService(client=client)

        lines = [line async for line in service.build_image("/tmp/ctx", "pushdeploy/a:1")]

        assert lines == ["Step 1/2 : FROM python", "Pulling fs layer", "Successfully built 123"]
        assert client.api.build.call_args.kwargs["labels"][MANAGED_LABEL] == "true"

    async def test_build_image_error(self):
        client = MagicMock()
        client.api.build.return_value = iter([
            {"stream": "Step 1/1 : RUN false\n"},
            {"error": "returned a non-zero code", "errorDetail": {"message": "The command returned a non-zero code: 1"}},
        ])
        service = DockerService(client=client)
        lines = []

        with pytest.raises(ImageBuildError) as exc:
            async for line in service.build_image("/tmp/ctx", "pushdeploy/a:1"):
                lines.append(line)

        assert exc.value.message == "The command returned a non-zero code: 1"
        assert lines[-1] == "The command returned a non-zero code: 1"
