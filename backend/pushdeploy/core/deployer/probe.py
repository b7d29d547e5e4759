"""
Readiness probe

HTTP GET against a freshly started instance with exponential backoff,
bounded both by an attempt budget and a total deadline.
"""

import asyncio
import logging
from typing import Optional

import httpx

from pushdeploy.config.settings import DeployConfig

logger = logging.getLogger(__name__)


class ReadinessProbe:
    """Poll an instance until it answers"""

    def __init__(
        self,
        path: str = None,
        timeout: float = None,
        max_attempts: int = None,
        initial_delay: float = None,
        max_delay: float = None,
        request_timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.path = path or DeployConfig.HEALTH_PATH
        self.timeout = timeout if timeout is not None else DeployConfig.PROBE_TIMEOUT
        self.max_attempts = max_attempts or DeployConfig.PROBE_MAX_ATTEMPTS
        self.initial_delay = initial_delay if initial_delay is not None else DeployConfig.PROBE_INITIAL_DELAY
        self.max_delay = max_delay if max_delay is not None else DeployConfig.PROBE_MAX_DELAY
        self.request_timeout = request_timeout or DeployConfig.PROBE_REQUEST_TIMEOUT
        self.transport = transport

    async def wait_ready(self, address: str) -> int:
        """
        Returns:
            The number of attempts made when the instance answered, or 0
            when the budget ran out first
        """
        url = f"{address}{self.path}"
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        delay = self.initial_delay

        async with httpx.AsyncClient(timeout=self.request_timeout, transport=self.transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await client.get(url)
                    # Any answer short of a server error means the app is serving
                    if response.status_code < 500:
                        logger.info(f"{url} ready after {attempt} attempt(s) (HTTP {response.status_code})")
                        return attempt
                    logger.debug(f"{url} answered HTTP {response.status_code}")
                except httpx.HTTPError as e:
                    logger.debug(f"{url} not ready: {e.__class__.__name__}")

                remaining = deadline - loop.time()
                if remaining <= 0 or attempt == self.max_attempts:
                    break
                await asyncio.sleep(min(delay, remaining))
                delay = min(delay * 2, self.max_delay)

        logger.warning(f"{url} not ready within {self.timeout}s / {self.max_attempts} attempts")
        return 0
