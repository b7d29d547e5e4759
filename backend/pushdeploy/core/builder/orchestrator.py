"""
Build Orchestrator

Drives every build through QUEUED -> BUILDING -> SUCCESSFUL | FAILED.

Each project has a lane: a FIFO queue drained by a single worker task, so a
project has at most one build BUILDING and its builds finish in push order.
Lanes of different projects run in parallel, bounded by a global slot
semaphore. A successful build is handed to the deployer from inside the
lane, so releases of one project are applied in build order as well.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from pushdeploy.config.settings import BuildConfig
from pushdeploy.core.builder.log_buffer import BuildLog, LogRegistry
from pushdeploy.core.builder.strategy import BuildContext, BuildStrategy, DockerfileStrategy
from pushdeploy.core.docker_service import DockerError
from pushdeploy.core.git.repository import RepositoryStore, GitOperationError
from pushdeploy.db.models.build import Build, BuildStatus
from pushdeploy.db.models.project import Project
from pushdeploy.db.repository import BuildRepository, ProjectRepository
from pushdeploy.utils.exceptions import BuildFailure, ReleaseTimeoutError, ResourceExhaustedError

logger = logging.getLogger(__name__)

ReleaseHook = Callable[[Project, Build], Awaitable[object]]


@dataclass
class ProjectLane:
    """FIFO of build ids for one project plus the task draining it"""
    project_id: str
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    worker: Optional[asyncio.Task] = None


class BuildOrchestrator:
    """Admit pushes as builds and run them"""

    def __init__(
        self,
        repositories: Optional[RepositoryStore] = None,
        strategy: Optional[BuildStrategy] = None,
        release: Optional[ReleaseHook] = None,
        build_repo: Optional[BuildRepository] = None,
        project_repo: Optional[ProjectRepository] = None,
        workspace: Optional[Path] = None,
        max_concurrent: int = None,
        max_queued: int = None,
        timeout: float = None,
    ):
        self.repositories = repositories or RepositoryStore()
        self.strategy = strategy or DockerfileStrategy()
        self.release = release
        self.build_repo = build_repo or BuildRepository()
        self.project_repo = project_repo or ProjectRepository()
        self.workspace = Path(workspace or BuildConfig.WORKSPACE_PATH)
        self.max_concurrent = max_concurrent or BuildConfig.MAX_CONCURRENT
        self.max_queued = max_queued or BuildConfig.MAX_QUEUED
        self.timeout = timeout or BuildConfig.TIMEOUT

        self.logs = LogRegistry(self.build_repo)
        self._lanes: Dict[str, ProjectLane] = {}
        self._slots: Optional[asyncio.Semaphore] = None

    @property
    def slots(self) -> asyncio.Semaphore:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_concurrent)
        return self._slots

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def submit(self, project: Project, commit_sha: str, ref: str) -> Build:
        """
        Record a QUEUED build and put it at the end of the project's lane

        Raises:
            ResourceExhaustedError: If the project already has max_queued pending builds
        """
        await self.ensure_capacity(project)
        build = await self.build_repo.create_build(project.id, commit_sha, ref)
        self._enqueue(project.id, build.id)
        logger.info(f"Queued build {build.id} of {project.full_name} at {commit_sha[:12]} ({ref})")
        return build

    async def ensure_capacity(self, project: Project) -> None:
        """
        Raises:
            ResourceExhaustedError: If the project already has max_queued pending builds
        """
        pending = await self.build_repo.count_pending(project.id)
        if pending >= self.max_queued:
            raise ResourceExhaustedError(
                f"Build queue of {project.full_name} is full ({pending} pending), try again later"
            )

    def _enqueue(self, project_id: str, build_id: str) -> None:
        lane = self._lanes.get(project_id)
        if lane is None:
            lane = ProjectLane(project_id=project_id)
            self._lanes[project_id] = lane
        lane.queue.put_nowait(build_id)
        if lane.worker is None or lane.worker.done():
            lane.worker = asyncio.create_task(self._drain(lane), name=f"build-lane-{project_id}")

    async def _drain(self, lane: ProjectLane) -> None:
        while True:
            if lane.queue.empty():
                # No await between the check and the removal
                if self._lanes.get(lane.project_id) is lane:
                    del self._lanes[lane.project_id]
                return
            build_id = lane.queue.get_nowait()
            try:
                await self._run(build_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Build lane of project {lane.project_id} failed on build {build_id}")
            finally:
                lane.queue.task_done()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run(self, build_id: str) -> None:
        build = await self.build_repo.get_build(build_id)
        if build is None or build.status != BuildStatus.QUEUED:
            logger.info(f"Skipping build {build_id}: no longer queued")
            return
        project = await self.project_repo.get_project_by_id(build.project_id)
        if project is None:
            return

        async with self.slots:
            if not await self.build_repo.transition(build.id, BuildStatus.QUEUED, BuildStatus.BUILDING):
                return
            build = await self._build(project, build)

        if build is not None and build.status == BuildStatus.SUCCESSFUL and self.release is not None:
            await self._release(project, build)

    async def _build(self, project: Project, build: Build) -> Optional[Build]:
        log = self.logs.open(build.id, build.log or "")
        log.stamp(f"Build {build.id} started for {build.commit_sha[:12]} ({build.ref})")
        workdir = self.workspace / build.id
        image_tag = None
        error = None
        try:
            artifact = await asyncio.wait_for(self._execute(project, build, workdir, log), self.timeout)
            image_tag = artifact.image_tag
        except asyncio.TimeoutError:
            error = f"Build timeout after {int(self.timeout)} seconds"
        except BuildFailure as e:
            error = e.message
        except (DockerError, GitOperationError) as e:
            error = e.message
        except asyncio.CancelledError:
            await self.logs.discard(build.id)
            raise
        except Exception as e:
            logger.exception(f"Build {build.id} crashed")
            error = f"Internal error: {e}"
        finally:
            await asyncio.to_thread(shutil.rmtree, workdir, True)

        if error is None:
            log.stamp("Build successful")
            target, values = BuildStatus.SUCCESSFUL, {"image_tag": image_tag}
        else:
            log.stamp(f"Build failed: {error}")
            target, values = BuildStatus.FAILED, {"error_message": error[:2000]}

        text = await self.logs.close(build.id)
        moved = await self.build_repo.transition(build.id, BuildStatus.BUILDING, target, log=text, **values)
        logger.info(f"Build {build.id} of {project.full_name}: {target.value if moved else 'transition lost'}")
        return await self.build_repo.get_build(build.id)

    async def _execute(self, project: Project, build: Build, workdir: Path, log: BuildLog):
        repo_path = self.repositories.require(project.owner, project.name)
        log.stamp(f"Checking out {build.commit_sha}")
        await self.repositories.checkout(repo_path, workdir, build.commit_sha)
        context = BuildContext(
            build_id=build.id,
            owner=project.owner,
            project=project.name,
            slug=project.slug,
            commit_sha=build.commit_sha,
            source_dir=workdir,
        )
        return await self.strategy.build(context, log)

    async def _release(self, project: Project, build: Build) -> None:
        """Deploy a successful build; failures are appended to its log"""
        try:
            deployment = await self.release(project, build)
            note = "Release complete" if deployment is not None else "Release abandoned, project torn down"
        except ReleaseTimeoutError as e:
            note = f"Release failed: {e.message}; previous deployment kept"
        except DockerError as e:
            note = f"Release failed: {e.message}; previous deployment kept"
        logger.info(f"Build {build.id} of {project.full_name}: {note}")

        current = await self.build_repo.get_build(build.id)
        if current is not None:
            log = BuildLog(build.id, current.log or "")
            log.stamp(note)
            await self.build_repo.save_log(build.id, log.text())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def recover(self) -> int:
        """
        Settle builds a previous process left behind

        BUILDING builds are failed; QUEUED builds are re-admitted oldest
        first. Returns the number of re-admitted builds.
        """
        for build in await self.build_repo.list_by_status([BuildStatus.BUILDING]):
            note = BuildLog(build.id, build.log or "")
            note.stamp("Build interrupted by a server restart")
            await self.build_repo.transition(
                build.id,
                BuildStatus.BUILDING,
                BuildStatus.FAILED,
                error_message="Build interrupted by a server restart",
                log=note.text(),
            )
            logger.warning(f"Marked interrupted build {build.id} as FAILED")

        queued = await self.build_repo.list_by_status([BuildStatus.QUEUED])
        for build in queued:
            self._enqueue(build.project_id, build.id)
        if queued:
            logger.info(f"Re-admitted {len(queued)} queued builds")
        return len(queued)

    async def cancel_project(self, project_id: str) -> bool:
        """
        Stop the project's lane, dropping its queued builds and interrupting
        the running build or release

        Returns False when the project had no lane.
        """
        lane = self._lanes.pop(project_id, None)
        if lane is None or lane.worker is None:
            return False
        lane.worker.cancel()
        await asyncio.gather(lane.worker, return_exceptions=True)
        logger.info(f"Build lane of project {project_id} cancelled ({lane.queue.qsize()} queued builds dropped)")
        return True

    def live_log(self, build_id: str) -> Optional[str]:
        log = self.logs.get(build_id)
        return log.text() if log else None

    async def wait_idle(self, project_id: Optional[str] = None) -> None:
        """Wait until the given lane (or every lane) has drained"""
        while True:
            if project_id is not None:
                lane = self._lanes.get(project_id)
                lanes = [lane] if lane else []
            else:
                lanes = list(self._lanes.values())
            if not lanes:
                return
            await asyncio.gather(*(lane.queue.join() for lane in lanes))
            await asyncio.gather(*(lane.worker for lane in lanes if lane.worker), return_exceptions=True)

    async def shutdown(self) -> None:
        workers = [lane.worker for lane in self._lanes.values() if lane.worker and not lane.worker.done()]
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._lanes.clear()
        logger.info(f"Build orchestrator stopped ({len(workers)} lanes cancelled)")
