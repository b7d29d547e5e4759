"""
Git Service

Smart-HTTP reception for the project repositories. Every request is checked
against the project's git credentials before the repository is touched; a
successful push to the default branch becomes a build.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from fastapi import Request

from pushdeploy.config.settings import GitConfig
from pushdeploy.core.git import (
    FLUSH_PKT,
    RefUpdate,
    advertisement_preamble,
    decode_body,
    parse_receive_commands,
)
from pushdeploy.db.models.project import Project
from pushdeploy.db.repository import ProjectRepository
from pushdeploy.service.platform import Platform, get_platform
from pushdeploy.utils.exceptions import (
    AuthenticationError,
    NotFoundError,
    PayloadTooLargeError,
    ResourceExhaustedError,
)

logger = logging.getLogger(__name__)

BASIC_CHALLENGE = {"WWW-Authenticate": 'Basic realm="pushdeploy", charset="UTF-8"'}


def strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def parse_basic_auth(authorization: Optional[str]) -> Optional[Tuple[str, str]]:
    """(username, password) from a Basic authorization header, None if absent or malformed"""
    if not authorization:
        return None
    scheme, _, encoded = authorization.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


async def read_limited_body(request: Request, limit: int = None) -> bytes:
    """
    Read the request body, refusing anything over ``limit`` bytes

    Raises:
        PayloadTooLargeError: When the declared or actual size is over the limit
    """
    limit = limit or GitConfig.BODY_LIMIT
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(f"Request body exceeds {limit} bytes")

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLargeError(f"Request body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


class GitService:
    """Authentication, transport and post-push handling"""

    def __init__(self, platform: Optional[Platform] = None):
        self._platform = platform
        self.project_repo = ProjectRepository()

    @property
    def platform(self) -> Platform:
        return self._platform or get_platform()

    async def authenticate(self, owner: str, name: str, authorization: Optional[str]) -> Project:
        """
        Resolve the project a git request is for and check its credentials

        Unknown project, wrong username and wrong password are answered the
        same way, after the same amount of work.

        Raises:
            AuthenticationError: 401 carrying the Basic challenge
        """
        name = strip_git_suffix(name)
        project = await self.project_repo.get_project(owner, name)

        if not GitConfig.AUTH_ENABLED:
            if project is None:
                raise NotFoundError(f"Repository {owner}/{name} not found", resource_type="repository")
            return project

        credentials = parse_basic_auth(authorization)
        if credentials is None:
            raise AuthenticationError("Authentication required", headers=BASIC_CHALLENGE)

        username, password = credentials
        if not await self.platform.credentials.authenticate(project, username, password):
            logger.info(f"Git authentication failed for {owner}/{name} as '{username}'")
            raise AuthenticationError("Invalid credentials", headers=BASIC_CHALLENGE)
        return project

    def repository_path(self, project: Project) -> Path:
        return self.platform.repositories.require(project.owner, project.name)

    # ------------------------------------------------------------------
    # Smart HTTP
    # ------------------------------------------------------------------

    async def advertise(self, project: Project, service: str, protocol: Optional[str] = None) -> bytes:
        path = self.repository_path(project)
        refs = await self.platform.repositories.advertise_refs(path, service, protocol)
        return advertisement_preamble(service) + refs

    async def upload_pack(self, project: Project, body: bytes, content_encoding: Optional[str], protocol: Optional[str] = None) -> AsyncIterator[bytes]:
        """Fetch/clone; output is streamed as git produces it"""
        path = self.repository_path(project)
        body = decode_body(body, content_encoding)
        if body == FLUSH_PKT:
            return _empty()
        return self.platform.repositories.stream_service(path, "upload-pack", body, protocol)

    async def receive_pack(self, project: Project, body: bytes, content_encoding: Optional[str], protocol: Optional[str] = None) -> bytes:
        """
        Apply a push and queue a build for the default branch

        The response does not wait for the build.

        Raises:
            ResourceExhaustedError: When the project's build queue is full; the
                push is refused before any object is received
            GitTransportError: When git rejects the push
        """
        path = self.repository_path(project)
        body = decode_body(body, content_encoding)
        if body == FLUSH_PKT:
            return b""

        updates = parse_receive_commands(body)
        if any(u.branch and not u.is_delete for u in updates):
            await self.platform.orchestrator.ensure_capacity(project)

        output = await self.platform.repositories.run_service(path, "receive-pack", body, protocol)
        await self._after_push(project, path, updates)
        return output

    async def _after_push(self, project: Project, path: Path, updates: List[RefUpdate]) -> None:
        repositories = self.platform.repositories
        await repositories.update_server_info(path)
        head = await repositories.adopt_head(path, updates)

        for update in updates:
            if update.is_delete or update.branch != head:
                logger.info(f"Push to {update.ref} of {project.full_name} does not trigger a build")
                continue
            sha = await repositories.resolve_commit(path, update.ref)
            if sha != update.new_sha:
                logger.warning(f"{update.ref} of {project.full_name} is at {sha}, not the pushed {update.new_sha}")
                continue
            try:
                await self.platform.orchestrator.submit(project, sha, update.ref)
            except ResourceExhaustedError as e:
                logger.warning(f"Push to {project.full_name} accepted but not built: {e.message}")

    # ------------------------------------------------------------------
    # Dumb HTTP
    # ------------------------------------------------------------------

    async def info_refs_file(self, project: Project) -> bytes:
        """``info/refs`` for clients without smart-HTTP support"""
        path = self.repository_path(project)
        await self.platform.repositories.update_server_info(path)
        return self.repository_file(project, "info/refs").read_bytes()

    def repository_file(self, project: Project, relative: str) -> Path:
        """
        A file inside the bare repository

        Raises:
            NotFoundError: If the file does not exist or lies outside the repository
        """
        root = self.repository_path(project).resolve()
        target = (root / relative).resolve()
        if root not in target.parents or not target.is_file():
            raise NotFoundError(f"{relative} not found", resource_type="repository_file")
        return target


async def _empty() -> AsyncIterator[bytes]:
    return
    yield
