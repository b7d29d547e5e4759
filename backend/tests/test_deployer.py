"""Tests for releases, the routing table and the readiness probe."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from pushdeploy.core.deployer import Deployer, ReadinessProbe, RoutingTable
from pushdeploy.core.docker_service import DockerError
from pushdeploy.db.models.build import BuildStatus
from pushdeploy.db.models.deployment import DeploymentStatus
from pushdeploy.db.repository import BuildRepository, DeploymentRepository, EnvironRepository, ProjectRepository
from pushdeploy.utils.exceptions import ReleaseTimeoutError

from conftest import GatedProbe, failing_probe_transport


@pytest.fixture
async def project(make_user, make_project):
    owner = await make_user("alice")
    return await make_project(owner, "site")


@pytest.fixture
def successful_build(project):
    builds = BuildRepository()

    async def _make():
        build = await builds.create_build(project.id, "c" * 40, "refs/heads/master")
        await builds.transition(build.id, BuildStatus.QUEUED, BuildStatus.BUILDING)
        await builds.transition(
            build.id, BuildStatus.BUILDING, BuildStatus.SUCCESSFUL,
            image_tag=f"pushdeploy/alice-site:{build.id}",
        )
        return await builds.get_build(build.id)

    return _make


@pytest.fixture
def deployer(fake_docker, ready_probe, routing):
    return Deployer(docker=fake_docker, probe=ready_probe, routing=routing, on_replaced=AsyncMock())


class TestRelease:

    async def test_first_release_becomes_active(self, deployer, project, successful_build, fake_docker, routing):
        await EnvironRepository().set_var(project.id, "GREETING", "hello")
        build = await successful_build()

        deployment = await deployer.release(project, build)

        assert deployment.status == DeploymentStatus.ACTIVE
        assert deployment.hostname == "alice-site.apps.test"
        assert deployment.build_id == build.id
        assert (deployment.host, deployment.port) == ("10.0.0.1", 8000)
        assert fake_docker.last_environment["GREETING"] == "hello"
        assert fake_docker.last_environment["PORT"] == "80"

        route = routing.lookup("alice-site.apps.test:443")
        assert route.deployment_id == deployment.id
        assert route.address == "http://10.0.0.1:8000"
        deployer.on_replaced.assert_not_awaited()

    async def test_second_release_swaps(self, deployer, project, successful_build, fake_docker, routing):
        first = await deployer.release(project, await successful_build())
        second = await deployer.release(project, await successful_build())

        repo = DeploymentRepository()
        assert (await repo.get_deployment(first.id)).status == DeploymentStatus.RETIRED
        assert (await repo.get_active(project.id)).id == second.id
        assert routing.lookup("alice-site.apps.test").address == "http://10.0.0.2:8000"
        assert fake_docker.removed == [first.container_id]
        deployer.on_replaced.assert_awaited_once_with(project.id)

    async def test_probe_timeout_keeps_previous(self, deployer, project, successful_build, fake_docker, routing, dead_probe):
        first = await deployer.release(project, await successful_build())
        deployer.probe = dead_probe

        with pytest.raises(ReleaseTimeoutError):
            await deployer.release(project, await successful_build())

        repo = DeploymentRepository()
        assert (await repo.get_active(project.id)).id == first.id
        assert routing.lookup("alice-site.apps.test").deployment_id == first.id
        assert fake_docker.removed == ["container-2"]
        assert "container-1" in fake_docker.running
        deployer.on_replaced.assert_not_awaited()

    async def test_container_start_failure(self, deployer, project, successful_build, fake_docker, routing):
        fake_docker.run_error = "image not found"

        with pytest.raises(DockerError):
            await deployer.release(project, await successful_build())

        assert await DeploymentRepository().get_active(project.id) is None
        assert routing.lookup("alice-site.apps.test") is None

    async def test_teardown(self, deployer, project, successful_build, fake_docker, routing):
        deployment = await deployer.release(project, await successful_build())

        await deployer.teardown(project)

        assert await DeploymentRepository().get_active(project.id) is None
        assert routing.routes() == []
        assert deployment.container_id in fake_docker.removed

    async def test_teardown_while_starting(self, deployer, project, successful_build, fake_docker, routing):
        probe = deployer.probe = GatedProbe()
        task = asyncio.create_task(deployer.release(project, await successful_build()))
        await asyncio.wait_for(probe.started.wait(), 2)

        await deployer.teardown(project)
        probe.gate.set()

        assert await task is None
        assert routing.routes() == []
        assert fake_docker.removed == ["container-1"]
        assert fake_docker.running == {}
        assert await DeploymentRepository().get_active(project.id) is None
        deployer.on_replaced.assert_not_awaited()

    async def test_project_deleted_while_starting(self, deployer, project, successful_build, fake_docker, routing):
        probe = deployer.probe = GatedProbe()
        task = asyncio.create_task(deployer.release(project, await successful_build()))
        await asyncio.wait_for(probe.started.wait(), 2)

        await ProjectRepository().delete_project(project.id)
        probe.gate.set()

        assert await task is None
        assert routing.routes() == []
        assert fake_docker.running == {}

    async def test_cancelled_while_starting(self, deployer, project, successful_build, fake_docker, routing):
        probe = deployer.probe = GatedProbe()
        task = asyncio.create_task(deployer.release(project, await successful_build()))
        await asyncio.wait_for(probe.started.wait(), 2)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert routing.routes() == []
        assert fake_docker.removed == ["container-1"]

    async def test_warmup_restores_routes(self, deployer, project, successful_build, fake_docker, ready_probe):
        deployment = await deployer.release(project, await successful_build())

        fresh = Deployer(docker=fake_docker, probe=ready_probe, routing=RoutingTable())
        assert await fresh.warmup() == 1
        assert fresh.routing.lookup("alice-site.apps.test").deployment_id == deployment.id


class TestReadinessProbe:

    async def test_ready_on_first_answer(self):
        probe = ReadinessProbe(path="/", timeout=1, max_attempts=3, transport=httpx.MockTransport(
            lambda request: httpx.Response(404)
        ))
        assert await probe.wait_ready("http://10.0.0.1:8000") == 1

    async def test_retries_until_ready(self):
        answers = iter([503, 502, 200])
        probe = ReadinessProbe(
            path="/healthz", timeout=5, max_attempts=5, initial_delay=0.01, max_delay=0.02,
            transport=httpx.MockTransport(lambda request: httpx.Response(next(answers))),
        )
        assert await probe.wait_ready("http://10.0.0.1:8000") == 3

    async def test_attempt_budget(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            raise httpx.ConnectError("refused", request=request)

        probe = ReadinessProbe(
            path="/", timeout=5, max_attempts=3, initial_delay=0.01, max_delay=0.01,
            transport=httpx.MockTransport(handler),
        )
        assert await probe.wait_ready("http://10.0.0.1:8000") == 0
        assert len(seen) == 3

    async def test_deadline(self):
        probe = ReadinessProbe(
            path="/", timeout=0.1, max_attempts=1000, initial_delay=0.05, max_delay=0.05,
            transport=failing_probe_transport(),
        )
        assert await probe.wait_ready("http://10.0.0.1:8000") == 0
