"""
Routing table

Maps each project's stable external hostname to the internal address of its
active deployment. Only the deployer writes to it, under the project's
routing lock.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from pushdeploy.config.settings import RoutingConfig

logger = logging.getLogger(__name__)


def project_slug(owner: str, name: str) -> str:
    """'alice', 'my.site' -> 'alice-my-site'"""
    return f"{owner}-{name}".replace(".", "-").replace("_", "-").lower()


def hostname_for(slug: str, domain: Optional[str] = None) -> str:
    return f"{slug}.{domain or RoutingConfig.DOMAIN}"


@dataclass(frozen=True)
class Route:
    project_id: str
    hostname: str
    deployment_id: str
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"http://{self.host}:{self.port}"


class RoutingTable:
    """hostname -> Route"""

    def __init__(self):
        self._routes: Dict[str, Route] = {}

    @staticmethod
    def _normalize(host: str) -> str:
        host = (host or "").strip().lower()
        if host.startswith("["):
            return host
        return host.split(":", 1)[0]

    def set(self, route: Route) -> None:
        previous = self._routes.get(route.hostname)
        self._routes[route.hostname] = route
        if previous and previous.deployment_id != route.deployment_id:
            logger.info(f"Route {route.hostname}: {previous.address} -> {route.address}")
        else:
            logger.info(f"Route {route.hostname} -> {route.address}")

    def lookup(self, host: str) -> Optional[Route]:
        return self._routes.get(self._normalize(host))

    def for_project(self, project_id: str) -> Optional[Route]:
        for route in self._routes.values():
            if route.project_id == project_id:
                return route
        return None

    def remove_project(self, project_id: str) -> Optional[Route]:
        for hostname, route in list(self._routes.items()):
            if route.project_id == project_id:
                del self._routes[hostname]
                logger.info(f"Route {hostname} removed")
                return route
        return None

    def is_project_host(self, host: str) -> bool:
        """Host is under the routing domain (whether or not a route exists)"""
        name = self._normalize(host)
        return name.endswith("." + RoutingConfig.DOMAIN.lower())

    def routes(self) -> List[Route]:
        return list(self._routes.values())

    def clear(self) -> None:
        self._routes.clear()


_routing_table: Optional[RoutingTable] = None


def get_routing_table() -> RoutingTable:
    global _routing_table
    if _routing_table is None:
        _routing_table = RoutingTable()
    return _routing_table
