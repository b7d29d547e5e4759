"""
Bare repository storage

One bare repository per project under ``git.base_path/<owner>/<name>.git``.
GitPython handles repository administration; the stateless-RPC transport
runs the ``git`` binary as an asyncio subprocess.
"""

import asyncio
import logging
import os
import shutil
from functools import wraps
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, TypeVar

from git import Repo
from git.exc import GitCommandError, BadName, InvalidGitRepositoryError, NoSuchPathError

from pushdeploy.config.settings import GitConfig
from pushdeploy.core.git.protocol import RefUpdate
from pushdeploy.utils.exceptions import GitTransportError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

STREAM_CHUNK_SIZE = 64 * 1024


class GitOperationError(Exception):
    """Exception for Git operations."""

    def __init__(self, message: str, operation: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details or {}


def git_operation(operation_name: str):
    """Decorator for Git operations with error handling."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except GitCommandError as e:
                raise GitOperationError(
                    message=f"Git {operation_name} failed: {str(e)}",
                    operation=operation_name,
                    details={"stderr": getattr(e, "stderr", None)},
                )
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise GitOperationError(
                    message=f"Git {operation_name} failed: not a repository: {e}",
                    operation=operation_name,
                )
        return wrapper
    return decorator


def _git_env(protocol: Optional[str] = None) -> dict:
    env = dict(os.environ)
    env.pop("GIT_DIR", None)
    if protocol and protocol.strip() == "version=2":
        env["GIT_PROTOCOL"] = "version=2"
    return env


class RepositoryStore:
    """Locate, create and serve the bare repositories of projects"""

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path or GitConfig.BASE_PATH)

    def path_for(self, owner: str, name: str) -> Path:
        if name.endswith(".git"):
            name = name[:-4]
        return self.base_path / owner / f"{name}.git"

    def exists(self, owner: str, name: str) -> bool:
        return (self.path_for(owner, name) / "HEAD").is_file()

    @git_operation("init")
    async def create(self, owner: str, name: str) -> Path:
        """Initialise an empty bare repository whose HEAD names the default branch"""
        path = self.path_for(owner, name)

        def _init():
            path.parent.mkdir(parents=True, exist_ok=True)
            with Repo.init(path, bare=True, mkdir=True) as repo:
                repo.git.symbolic_ref("HEAD", f"refs/heads/{GitConfig.DEFAULT_BRANCH}")
                with repo.config_writer() as config:
                    config.set_value("http", "receivepack", "true")
                    config.set_value("receive", "denyDeleteCurrent", "warn")
            return path

        created = await asyncio.to_thread(_init)
        logger.info(f"Created bare repository {created}")
        return created

    async def delete(self, owner: str, name: str) -> None:
        path = self.path_for(owner, name)
        if path.exists():
            await asyncio.to_thread(shutil.rmtree, path)
            logger.info(f"Deleted repository {path}")

    def require(self, owner: str, name: str) -> Path:
        path = self.path_for(owner, name)
        if not (path / "HEAD").is_file():
            raise NotFoundError(f"Repository {owner}/{name} not found", resource_type="repository")
        return path

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    @git_operation("resolve")
    async def resolve_commit(self, path: Path, ref: str) -> Optional[str]:
        """Commit sha a ref points at, None if it does not resolve"""
        def _resolve():
            with Repo(path) as repo:
                try:
                    return repo.commit(ref).hexsha
                except (BadName, ValueError):
                    return None

        return await asyncio.to_thread(_resolve)

    @git_operation("adopt_head")
    async def adopt_head(self, path: Path, updates: List[RefUpdate]) -> str:
        """
        Point HEAD at a pushed branch when its current target does not exist

        Mirrors hosted git servers, where the first pushed branch becomes the
        default. Returns the (possibly new) head branch.
        """
        def _adopt():
            with Repo(path) as repo:
                current = repo.git.symbolic_ref("HEAD")
                if current.startswith("refs/heads/") and current[len("refs/heads/"):] in repo.heads:
                    return current[len("refs/heads/"):]
                for update in updates:
                    if update.branch and not update.is_delete and update.branch in repo.heads:
                        repo.git.symbolic_ref("HEAD", update.ref)
                        logger.info(f"HEAD of {path} now follows {update.ref}")
                        return update.branch
                return current[len("refs/heads/"):] if current.startswith("refs/heads/") else current

        return await asyncio.to_thread(_adopt)

    @git_operation("update_server_info")
    async def update_server_info(self, path: Path) -> None:
        def _update():
            with Repo(path) as repo:
                repo.git.update_server_info()

        await asyncio.to_thread(_update)

    @git_operation("clone")
    async def checkout(self, path: Path, dest: Path, commit_sha: str) -> Path:
        """Clone the bare repository into ``dest`` with ``commit_sha`` checked out detached"""
        def _clone():
            if dest.exists():
                shutil.rmtree(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            with Repo.clone_from(str(path), str(dest), no_checkout=True) as repo:
                repo.git.checkout("--force", "--detach", commit_sha)
            return dest

        return await asyncio.to_thread(_clone)

    # ------------------------------------------------------------------
    # Stateless RPC transport
    # ------------------------------------------------------------------

    async def advertise_refs(self, path: Path, service: str, protocol: Optional[str] = None) -> bytes:
        """Output of ``git <service> --stateless-rpc --advertise-refs``"""
        proc = await asyncio.create_subprocess_exec(
            "git", service, "--stateless-rpc", "--advertise-refs", str(path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_git_env(protocol),
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"git {service} --advertise-refs failed for {path}: {message}")
            raise GitTransportError(f"git {service} failed", returncode=proc.returncode, stderr=message)
        return stdout

    async def run_service(self, path: Path, service: str, body: bytes, protocol: Optional[str] = None) -> bytes:
        """
        Run one stateless-RPC exchange to completion

        Raises:
            GitTransportError: If git exits non-zero
        """
        proc = await asyncio.create_subprocess_exec(
            "git", service, "--stateless-rpc", str(path),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_git_env(protocol),
        )
        stdout, stderr = await proc.communicate(body)
        message = stderr.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            logger.error(f"git {service} exited {proc.returncode} for {path}: {message}")
            raise GitTransportError(f"git {service} failed", returncode=proc.returncode, stderr=message)
        if message:
            logger.debug(f"git {service} stderr for {path}: {message}")
        return stdout

    async def stream_service(self, path: Path, service: str, body: bytes, protocol: Optional[str] = None) -> AsyncIterator[bytes]:
        """Run one stateless-RPC exchange, yielding stdout as it is produced"""
        proc = await asyncio.create_subprocess_exec(
            "git", service, "--stateless-rpc", str(path),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_git_env(protocol),
        )

        async def _feed():
            try:
                proc.stdin.write(body)
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.warning(f"git {service} closed stdin early for {path}")
            finally:
                proc.stdin.close()

        feeder = asyncio.create_task(_feed())
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            while True:
                chunk = await proc.stdout.read(STREAM_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
            await feeder
            await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
            if proc.returncode != 0:
                logger.error(f"git {service} exited {proc.returncode} for {path}: {stderr}")
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            feeder.cancel()
            stderr_task.cancel()
