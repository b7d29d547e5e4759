"""
Incremental build logs

Lines are kept in memory while a build runs so readers see them live, and
are written to the Build row periodically and once more at the end.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from pushdeploy.config.settings import BuildConfig
from pushdeploy.db.repository import BuildRepository

logger = logging.getLogger(__name__)

MAX_LOG_CHARS = 2 * 1024 * 1024


class BuildLog:
    """Append-only log of one build"""

    def __init__(self, build_id: str, initial: str = ""):
        self.build_id = build_id
        self._lines: List[str] = initial.splitlines() if initial else []
        self._size = sum(len(line) + 1 for line in self._lines)
        self._dirty = False
        self._dropped = 0

    def append(self, line: str) -> None:
        line = line.rstrip("\n")
        self._lines.append(line)
        self._size += len(line) + 1
        while self._size > MAX_LOG_CHARS and len(self._lines) > 1:
            removed = self._lines.pop(0)
            self._size -= len(removed) + 1
            self._dropped += 1
        self._dirty = True

    def stamp(self, message: str) -> None:
        """Append a platform message, marked apart from build output"""
        self.append(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] ==> {message}")

    def text(self) -> str:
        body = "\n".join(self._lines)
        if self._dropped:
            body = f"... {self._dropped} earlier lines truncated ...\n" + body
        return body + ("\n" if self._lines else "")

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False


class LogRegistry:
    """Live logs of running builds, flushed on an interval"""

    def __init__(self, build_repo: Optional[BuildRepository] = None, interval: float = None):
        self.build_repo = build_repo or BuildRepository()
        self.interval = interval if interval is not None else BuildConfig.LOG_FLUSH_INTERVAL
        self._logs: Dict[str, BuildLog] = {}
        self._flushers: Dict[str, asyncio.Task] = {}

    def open(self, build_id: str, initial: str = "") -> BuildLog:
        log = BuildLog(build_id, initial)
        self._logs[build_id] = log
        self._flushers[build_id] = asyncio.create_task(self._flush_loop(log))
        return log

    def get(self, build_id: str) -> Optional[BuildLog]:
        return self._logs.get(build_id)

    async def flush(self, log: BuildLog) -> None:
        if not log.dirty:
            return
        log.mark_clean()
        await self.build_repo.save_log(log.build_id, log.text())

    async def close(self, build_id: str) -> Optional[str]:
        """Stop the flusher, write the final text and forget the log"""
        await self._stop_flusher(build_id)
        log = self._logs.pop(build_id, None)
        if log is None:
            return None
        await self.build_repo.save_log(log.build_id, log.text())
        return log.text()

    async def discard(self, build_id: str) -> None:
        """Stop the flusher and forget the log without writing it"""
        await self._stop_flusher(build_id)
        self._logs.pop(build_id, None)

    async def _stop_flusher(self, build_id: str) -> None:
        flusher = self._flushers.pop(build_id, None)
        if flusher:
            flusher.cancel()
            await asyncio.gather(flusher, return_exceptions=True)

    async def _flush_loop(self, log: BuildLog) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.flush(log)
            except Exception as e:
                # Retried on the next tick and at close
                logger.warning(f"Flushing log of build {log.build_id} failed: {e}")
