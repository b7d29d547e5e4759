"""Pytest configuration and fixtures for backend tests."""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

# Settings are read at import time, so the environment comes first
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="pushdeploy-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_ROOT / 'pushdeploy.db'}"
os.environ["REPOSITORY_BASE_PATH"] = str(_TMP_ROOT / "repositories")
os.environ["BUILD_WORKSPACE_PATH"] = str(_TMP_ROOT / "builds")
os.environ["JWT_SECRET_KEY"] = "pushdeploy-test-secret-key-0123456789abcdef"
os.environ["PUSHDEPLOY_LOG_DIR"] = str(_TMP_ROOT / "logs")
os.environ["ROUTING_DOMAIN"] = "apps.test"

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

import httpx  # noqa: E402
from git import Actor, Repo  # noqa: E402

from pushdeploy.config.settings import GitConfig  # noqa: E402
from pushdeploy.core.deployer import ReadinessProbe, RoutingTable, close_proxy_client, project_slug  # noqa: E402
from pushdeploy.core.docker_service import ContainerInfo, ContainerStatus, DockerError, ImageBuildError  # noqa: E402
from pushdeploy.core.git import RepositoryStore  # noqa: E402
from pushdeploy.core.terminal import ShellProcess, TerminalBridge  # noqa: E402
from pushdeploy.db.base import drop_db, init_db  # noqa: E402
from pushdeploy.db.repository import ProjectRepository, UserRepository  # noqa: E402
from pushdeploy.utils.auth.password import hash_password  # noqa: E402

# Cheap hashes; the cost factor does not change behaviour
GitConfig.BCRYPT_ROUNDS = 4

AUTHOR = Actor("Test User", "test@example.com")


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------

class FakeDockerService:
    """In-memory stand-in for DockerService"""

    def __init__(self):
        self.build_output: List[str] = ["Step 1/2 : FROM scratch", "Step 2/2 : COPY . /app"]
        self.build_error: Optional[str] = None
        self.build_delay: float = 0
        self.run_error: Optional[str] = None
        self.built: List[str] = []
        self.started: List[str] = []
        self.removed: List[str] = []
        self.removed_images: List[str] = []
        self.running: Dict[str, ContainerInfo] = {}
        self.build_gate: Optional[asyncio.Event] = None
        self.active_builds = 0
        self.max_active_builds = 0

    async def build_image(self, context_path, tag, labels=None, dockerfile="Dockerfile"):
        self.active_builds += 1
        self.max_active_builds = max(self.max_active_builds, self.active_builds)
        try:
            if self.build_gate is not None:
                await self.build_gate.wait()
            if self.build_delay:
                await asyncio.sleep(self.build_delay)
            for line in self.build_output:
                yield line
            if self.build_error:
                raise ImageBuildError(message=self.build_error, operation="build_image")
            self.built.append(tag)
        finally:
            self.active_builds -= 1

    async def remove_image(self, tag):
        self.removed_images.append(tag)

    async def run_container(self, spec):
        if self.run_error:
            raise DockerError(message=self.run_error, operation="run_container")
        index = len(self.started) + 1
        info = ContainerInfo(
            id=f"container-{index}",
            name=spec.name,
            status=ContainerStatus.RUNNING,
            host=f"10.0.0.{index}",
            port=8000,
            labels=dict(spec.labels),
        )
        self.started.append(spec.name)
        self.running[info.id] = info
        self.last_environment = dict(spec.environment)
        return info

    async def remove_container(self, name_or_id, timeout=10):
        self.removed.append(name_or_id)
        return self.running.pop(name_or_id, None) is not None


class FakeProcess(ShellProcess):
    """Shell whose output the test feeds; b'' ends it"""

    def __init__(self):
        self.output: asyncio.Queue = asyncio.Queue()
        self.written: List[bytes] = []
        self.closed = False

    async def read(self) -> bytes:
        return await self.output.get()

    async def write(self, data: bytes) -> None:
        self.written.append(data)

    async def close(self) -> None:
        self.closed = True


class FakeWebSocket:
    """Accepted WebSocket; None in ``incoming`` is a client disconnect"""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[str] = []
        self.closed = None

    async def receive_text(self) -> str:
        from fastapi import WebSocketDisconnect

        item = await self.incoming.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    async def send_text(self, text: str) -> None:
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed = (code, reason)


class GatedProbe:
    """Readiness probe that answers only once ``gate`` is set"""

    def __init__(self):
        self.timeout = 1
        self.max_attempts = 1
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def wait_ready(self, address: str) -> int:
        self.started.set()
        await self.gate.wait()
        return 1


def probe_transport(status_code: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text="ok"))


def failing_probe_transport() -> httpx.MockTransport:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.MockTransport(handler)


def commit_files(workdir: Path, files: Dict[str, str], message: str = "update") -> str:
    """Write files into a working repository (created on first use) and commit"""
    if (workdir / ".git").exists():
        repo = Repo(workdir)
    else:
        repo = Repo.init(workdir)
    with repo:
        for relative, content in files.items():
            target = workdir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        repo.index.add(list(files))
        commit = repo.index.commit(message, author=AUTHOR, committer=AUTHOR)
        return commit.hexsha


def push(workdir: Path, bare_path: Path, branch: str = "master") -> None:
    with Repo(workdir) as repo:
        repo.git.push(str(bare_path), f"HEAD:refs/heads/{branch}")


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------

@pytest.fixture
async def db():
    """Fresh schema for each test"""
    await drop_db()
    await init_db()
    yield
    await drop_db()


@pytest.fixture
def repo_store(tmp_path) -> RepositoryStore:
    return RepositoryStore(tmp_path / "repositories")


@pytest.fixture
def fake_docker() -> FakeDockerService:
    return FakeDockerService()


@pytest.fixture
def routing() -> RoutingTable:
    return RoutingTable()


@pytest.fixture
def ready_probe() -> ReadinessProbe:
    return ReadinessProbe(path="/", timeout=1, max_attempts=2, initial_delay=0.01, transport=probe_transport())


@pytest.fixture
def dead_probe() -> ReadinessProbe:
    return ReadinessProbe(
        path="/", timeout=0.2, max_attempts=3, initial_delay=0.01, max_delay=0.02,
        transport=failing_probe_transport(),
    )


@pytest.fixture
def terminals():
    processes: List[FakeProcess] = []

    async def factory(deployment):
        process = FakeProcess()
        processes.append(process)
        return process

    bridge = TerminalBridge(process_factory=factory)
    bridge.processes = processes
    return bridge


@pytest.fixture
async def make_user(db):
    users = UserRepository()

    async def _make(username: str = "alice", password: str = "correct-horse-battery"):
        return await users.create_user(username, await hash_password(password), name=username.title())

    return _make


@pytest.fixture
async def make_project(db, repo_store):
    projects = ProjectRepository()

    async def _make(owner, name: str = "site"):
        slug = project_slug(owner.username, name)
        project = await projects.create_project(owner.id, owner.username, name, slug)
        await repo_store.create(project.owner, project.name)
        return project

    return _make


@pytest.fixture
async def proxy_client_reset():
    await close_proxy_client()
    yield
    await close_proxy_client()


@pytest.fixture
def deployment_stub():
    return SimpleNamespace(id="deployment-1", project_id="project-1", container_id="container-1", container_name="c1")
