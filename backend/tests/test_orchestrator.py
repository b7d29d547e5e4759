"""Tests for the build orchestrator."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from pushdeploy.core.builder import BuildOrchestrator, DockerfileStrategy
from pushdeploy.db.models.build import BuildStatus
from pushdeploy.db.repository import BuildRepository
from pushdeploy.utils.exceptions import ReleaseTimeoutError, ResourceExhaustedError

from conftest import commit_files, push

DOCKERFILE = {"Dockerfile": "FROM scratch\nCOPY . /app\n"}


async def wait_for_status(build_id, status, timeout=10.0):
    builds = BuildRepository()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        build = await builds.get_build(build_id)
        if build.status == status:
            return build
        await asyncio.sleep(0.02)
    raise AssertionError(f"build {build_id} never reached {status}")


@pytest.fixture
async def project(make_user, make_project):
    owner = await make_user("alice")
    return await make_project(owner, "site")


@pytest.fixture
def pushed(project, repo_store, tmp_path):
    """Push one commit with a Dockerfile and return its sha"""
    sha = commit_files(tmp_path / "work", {**DOCKERFILE, "index.html": "<h1>hi</h1>"})
    push(tmp_path / "work", repo_store.path_for(project.owner, project.name))
    return sha


@pytest.fixture
async def orchestrator(repo_store, fake_docker, tmp_path):
    instance = BuildOrchestrator(
        repositories=repo_store,
        strategy=DockerfileStrategy(docker=fake_docker),
        workspace=tmp_path / "builds",
        max_concurrent=2,
        max_queued=5,
        timeout=30,
    )
    yield instance
    await instance.shutdown()


class TestBuildLifecycle:

    async def test_successful_build(self, orchestrator, project, pushed, fake_docker, tmp_path):
        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        assert build.status == BuildStatus.QUEUED

        await orchestrator.wait_idle(project.id)
        done = await BuildRepository().get_build(build.id)

        assert done.status == BuildStatus.SUCCESSFUL
        assert done.image_tag == f"pushdeploy/alice-site:{build.id}"
        assert fake_docker.built == [done.image_tag]
        assert done.started_at is not None and done.finished_at is not None
        assert "Step 1/2 : FROM scratch" in done.log
        assert "Build successful" in done.log
        assert not (tmp_path / "builds" / build.id).exists()

    async def test_missing_dockerfile_fails(self, orchestrator, project, repo_store, tmp_path):
        sha = commit_files(tmp_path / "work", {"index.html": "no dockerfile"})
        push(tmp_path / "work", repo_store.path_for(project.owner, project.name))

        build = await orchestrator.submit(project, sha, "refs/heads/master")
        await orchestrator.wait_idle(project.id)
        done = await BuildRepository().get_build(build.id)

        assert done.status == BuildStatus.FAILED
        assert done.error_message == "No Dockerfile found at the repository root"
        assert "Build failed" in done.log

    async def test_image_build_error_fails_and_skips_release(self, orchestrator, project, pushed, fake_docker):
        fake_docker.build_error = "COPY failed: no such file"
        orchestrator.release = AsyncMock()

        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)
        done = await BuildRepository().get_build(build.id)

        assert done.status == BuildStatus.FAILED
        assert "COPY failed" in done.error_message
        orchestrator.release.assert_not_awaited()

    async def test_timeout(self, orchestrator, project, pushed, fake_docker):
        orchestrator.timeout = 1
        fake_docker.build_delay = 30

        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)
        done = await BuildRepository().get_build(build.id)

        assert done.status == BuildStatus.FAILED
        assert done.error_message == "Build timeout after 1 seconds"

    async def test_terminal_state_is_final(self, orchestrator, project, pushed):
        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)

        moved = await BuildRepository().transition(build.id, BuildStatus.BUILDING, BuildStatus.FAILED)
        assert moved is False
        assert (await BuildRepository().get_build(build.id)).status == BuildStatus.SUCCESSFUL


class TestLanes:

    async def test_one_building_per_project_in_push_order(self, orchestrator, project, pushed, fake_docker):
        fake_docker.build_gate = asyncio.Event()

        builds = [await orchestrator.submit(project, pushed, "refs/heads/master") for _ in range(3)]
        await wait_for_status(builds[0].id, BuildStatus.BUILDING)

        repo = BuildRepository()
        assert (await repo.get_build(builds[1].id)).status == BuildStatus.QUEUED
        assert (await repo.get_build(builds[2].id)).status == BuildStatus.QUEUED

        fake_docker.build_gate.set()
        await orchestrator.wait_idle(project.id)

        done = [await repo.get_build(b.id) for b in builds]
        assert all(b.status == BuildStatus.SUCCESSFUL for b in done)
        assert done[0].finished_at <= done[1].started_at
        assert done[1].finished_at <= done[2].started_at
        assert fake_docker.max_active_builds == 1

    async def test_projects_build_in_parallel(self, orchestrator, make_user, make_project, repo_store, fake_docker, tmp_path):
        owner = await make_user("bob")
        projects = [await make_project(owner, name) for name in ("one", "two")]
        shas = []
        for p in projects:
            work = tmp_path / f"work-{p.name}"
            shas.append(commit_files(work, DOCKERFILE))
            push(work, repo_store.path_for(p.owner, p.name))

        fake_docker.build_gate = asyncio.Event()
        builds = [await orchestrator.submit(p, sha, "refs/heads/master") for p, sha in zip(projects, shas)]
        for b in builds:
            await wait_for_status(b.id, BuildStatus.BUILDING)

        fake_docker.build_gate.set()
        await orchestrator.wait_idle()
        assert fake_docker.max_active_builds == 2

    async def test_queue_capacity(self, orchestrator, project, pushed, fake_docker):
        orchestrator.max_queued = 1
        fake_docker.build_gate = asyncio.Event()

        await orchestrator.submit(project, pushed, "refs/heads/master")
        with pytest.raises(ResourceExhaustedError):
            await orchestrator.submit(project, pushed, "refs/heads/master")

        fake_docker.build_gate.set()
        await orchestrator.wait_idle(project.id)


    async def test_cancel_project_drops_running_and_queued(self, orchestrator, project, pushed, fake_docker, tmp_path):
        fake_docker.build_gate = asyncio.Event()
        running, queued = [await orchestrator.submit(project, pushed, "refs/heads/master") for _ in range(2)]
        await wait_for_status(running.id, BuildStatus.BUILDING)

        assert await orchestrator.cancel_project(project.id) is True

        fake_docker.build_gate.set()
        await orchestrator.wait_idle(project.id)
        assert fake_docker.built == []
        assert (await BuildRepository().get_build(queued.id)).status == BuildStatus.QUEUED
        assert orchestrator.live_log(running.id) is None
        assert not (tmp_path / "builds" / running.id).exists()
        assert await orchestrator.cancel_project(project.id) is False


class TestRelease:

    async def test_successful_build_is_released(self, orchestrator, project, pushed):
        orchestrator.release = AsyncMock()

        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)

        orchestrator.release.assert_awaited_once()
        released_project, released_build = orchestrator.release.await_args.args
        assert released_project.id == project.id
        assert released_build.id == build.id
        assert "Release complete" in (await BuildRepository().get_build(build.id)).log

    async def test_release_timeout_keeps_build_successful(self, orchestrator, project, pushed):
        orchestrator.release = AsyncMock(side_effect=ReleaseTimeoutError("site-1 did not become ready within 60s"))

        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)
        done = await BuildRepository().get_build(build.id)

        assert done.status == BuildStatus.SUCCESSFUL
        assert "Release failed: site-1 did not become ready within 60s; previous deployment kept" in done.log


    async def test_abandoned_release_is_noted(self, orchestrator, project, pushed):
        orchestrator.release = AsyncMock(return_value=None)

        build = await orchestrator.submit(project, pushed, "refs/heads/master")
        await orchestrator.wait_idle(project.id)

        assert "Release abandoned, project torn down" in (await BuildRepository().get_build(build.id)).log


class TestRecovery:

    async def test_recover_fails_interrupted_and_requeues_queued(self, repo_store, fake_docker, tmp_path, project, pushed):
        repo = BuildRepository()
        interrupted = await repo.create_build(project.id, pushed, "refs/heads/master")
        await repo.transition(interrupted.id, BuildStatus.QUEUED, BuildStatus.BUILDING)
        waiting = await repo.create_build(project.id, pushed, "refs/heads/master")

        orchestrator = BuildOrchestrator(
            repositories=repo_store,
            strategy=DockerfileStrategy(docker=fake_docker),
            workspace=tmp_path / "builds",
        )
        try:
            assert await orchestrator.recover() == 1
            await orchestrator.wait_idle()
        finally:
            await orchestrator.shutdown()

        failed = await repo.get_build(interrupted.id)
        assert failed.status == BuildStatus.FAILED
        assert failed.error_message == "Build interrupted by a server restart"
        assert (await repo.get_build(waiting.id)).status == BuildStatus.SUCCESSFUL
