"""
Shell processes behind terminal sessions

The default process is an interactive ``docker exec`` with stdin attached;
its raw socket is read and written from worker threads.
"""

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from typing import Optional

from pushdeploy.config.settings import TerminalConfig
from pushdeploy.core.docker_service import DockerService, get_docker_service

logger = logging.getLogger(__name__)


class ShellProcess(ABC):
    """A running interactive process"""

    @abstractmethod
    async def read(self) -> bytes:
        """Next chunk of output; b'' once the process has ended"""
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the process handle. Safe to call more than once."""
        pass


class DockerExecProcess(ShellProcess):
    """Interactive shell inside a running container"""

    def __init__(self, exec_id: str, sock, docker: DockerService, chunk_size: int = None):
        self.exec_id = exec_id
        self._sock = sock
        self._docker = docker
        self._chunk_size = chunk_size or TerminalConfig.READ_CHUNK_SIZE
        self._closed = False

    @classmethod
    async def open(cls, container_id: str, shell: Optional[str] = None, docker: Optional[DockerService] = None) -> "DockerExecProcess":
        docker = docker or get_docker_service()
        exec_id, sock = await docker.open_exec(
            container_id,
            [shell or TerminalConfig.SHELL],
            environment={"TERM": "xterm-256color"},
        )
        logger.info(f"Opened exec {exec_id[:12]} in container {container_id[:12]}")
        return cls(exec_id, sock, docker)

    async def read(self) -> bytes:
        if self._closed:
            return b""
        try:
            return await asyncio.to_thread(self._sock.recv, self._chunk_size)
        except OSError as e:
            if not self._closed:
                logger.info(f"Exec {self.exec_id[:12]} stream ended: {e}")
            return b""

    async def write(self, data: bytes) -> None:
        if self._closed:
            return
        await asyncio.to_thread(self._sock.sendall, data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        def _close():
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Already disconnected by the peer
                pass
            self._sock.close()

        await asyncio.to_thread(_close)
        logger.info(f"Closed exec {self.exec_id[:12]}")
