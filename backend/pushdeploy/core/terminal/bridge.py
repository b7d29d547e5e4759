"""
Terminal Session Bridge

Couples a WebSocket to a shell process in the project's active deployment.
Inbound ``{"message": ...}`` frames become input lines; process output goes
out as text frames in arrival order. Sessions are keyed by
(project id, connection id) and are closed with a dedicated code when the
deployment they are attached to is replaced.
"""

import asyncio
import codecs
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from fastapi import WebSocket, WebSocketDisconnect

from pushdeploy.core.terminal.process import ShellProcess, DockerExecProcess
from pushdeploy.db.models.deployment import Deployment

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_DEPLOYMENT_REPLACED = 4001
CLOSE_PROCESS_EXITED = 4002
CLOSE_FORBIDDEN = 4003
CLOSE_NO_DEPLOYMENT = 4004

ProcessFactory = Callable[[Deployment], Awaitable[ShellProcess]]


async def docker_process_factory(deployment: Deployment) -> ShellProcess:
    return await DockerExecProcess.open(deployment.container_id or deployment.container_name)


@dataclass
class OutputChunk:
    seq: int
    received_at: float
    text: str


class TerminalSession:
    """One WebSocket attached to one shell process"""

    def __init__(self, project_id: str, connection_id: int, websocket: WebSocket, process: ShellProcess):
        self.project_id = project_id
        self.connection_id = connection_id
        self.websocket = websocket
        self.process = process
        self._output: asyncio.Queue = asyncio.Queue()
        self._stopped = asyncio.Event()
        self._close_code = CLOSE_NORMAL
        self._close_reason = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def key(self) -> Tuple[str, int]:
        return self.project_id, self.connection_id

    def stop(self, code: int, reason: str) -> None:
        """Ask the session to end and close the socket with ``code``"""
        if not self._stopped.is_set():
            self._close_code = code
            self._close_reason = reason
            self._stopped.set()

    async def run(self) -> int:
        """
        Pump both directions until one side ends

        Returns:
            The close code the session ended with
        """
        tasks = {
            asyncio.create_task(self._read_process(), name="terminal-read"),
            asyncio.create_task(self._send_output(), name="terminal-send"),
            asyncio.create_task(self._receive_input(), name="terminal-receive"),
            asyncio.create_task(self._stopped.wait(), name="terminal-stop"),
        }
        client_gone = False
        try:
            done, _ = await asyncio.wait(
                {t for t in tasks if t.get_name() != "terminal-read"},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                if task.get_name() == "terminal-receive" and not task.cancelled() and task.exception() is None:
                    client_gone = True
                elif task.get_name() == "terminal-send" and not task.cancelled() and task.exception() is None:
                    self.stop(CLOSE_PROCESS_EXITED, "process exited")
                elif task.get_name() != "terminal-stop" and not task.cancelled() and task.exception() is not None:
                    logger.warning(f"Terminal {self.key} pump failed: {task.exception()!r}")
                    self.stop(CLOSE_NORMAL, "terminal error")
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.process.close()

        if client_gone:
            return CLOSE_NORMAL
        try:
            await self.websocket.close(code=self._close_code, reason=self._close_reason)
        except RuntimeError:
            # Socket already closed by the peer
            logger.debug(f"Terminal {self.key} socket already closed")
        return self._close_code

    async def _read_process(self) -> None:
        seq = itertools.count()
        while True:
            data = await self.process.read()
            if not data:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    await self._output.put(OutputChunk(next(seq), time.time(), tail))
                await self._output.put(None)
                return
            text = self._decoder.decode(data)
            if text:
                await self._output.put(OutputChunk(next(seq), time.time(), text))

    async def _send_output(self) -> None:
        while True:
            chunk = await self._output.get()
            if chunk is None:
                return
            await self.websocket.send_text(chunk.text)

    async def _receive_input(self) -> None:
        try:
            while True:
                raw = await self.websocket.receive_text()
                try:
                    message = json.loads(raw).get("message")
                except (ValueError, AttributeError):
                    logger.debug(f"Terminal {self.key} ignored malformed frame")
                    continue
                if not isinstance(message, str):
                    continue
                await self.process.write((message + "\n").encode("utf-8"))
        except WebSocketDisconnect:
            return


class TerminalBridge:
    """Registry of live terminal sessions"""

    def __init__(self, process_factory: Optional[ProcessFactory] = None):
        self.process_factory = process_factory or docker_process_factory
        self._sessions: Dict[Tuple[str, int], TerminalSession] = {}
        self._ids = itertools.count(1)
        self._epochs: Dict[str, int] = {}
        self._last_close: Dict[str, Tuple[int, str]] = {}

    def sessions_for(self, project_id: str):
        return [s for key, s in self._sessions.items() if key[0] == project_id]

    def epoch(self, project_id: str) -> int:
        """Number of close_project calls seen for a project"""
        return self._epochs.get(project_id, 0)

    async def attach(self, websocket: WebSocket, deployment: Deployment, epoch: Optional[int] = None) -> int:
        """
        Run a session for an accepted WebSocket until it ends

        Args:
            epoch: The project's epoch when ``deployment`` was looked up.
                If close_project ran since, the session is closed right
                away with the code of that call.

        Returns:
            The close code
        """
        project_id = deployment.project_id
        if epoch is None:
            epoch = self.epoch(project_id)
        process = await self.process_factory(deployment)
        session = TerminalSession(project_id, next(self._ids), websocket, process)
        self._sessions[session.key] = session
        logger.info(f"Terminal {session.key} attached to deployment {deployment.id}")
        if self.epoch(project_id) != epoch:
            session.stop(*self._last_close[project_id])
        try:
            return await session.run()
        finally:
            self._sessions.pop(session.key, None)
            logger.info(f"Terminal {session.key} detached")

    async def close_project(self, project_id: str, code: int = CLOSE_DEPLOYMENT_REPLACED, reason: str = "deployment replaced") -> int:
        """End every session of a project; returns how many were open"""
        self._epochs[project_id] = self.epoch(project_id) + 1
        self._last_close[project_id] = (code, reason)
        sessions = self.sessions_for(project_id)
        for session in sessions:
            session.stop(code, reason)
        if sessions:
            logger.info(f"Closing {len(sessions)} terminal(s) of project {project_id}: {reason}")
        return len(sessions)

    async def shutdown(self) -> None:
        for session in list(self._sessions.values()):
            session.stop(CLOSE_NORMAL, "server shutting down")


_bridge: Optional[TerminalBridge] = None


def get_terminal_bridge() -> TerminalBridge:
    global _bridge
    if _bridge is None:
        _bridge = TerminalBridge()
    return _bridge
