"""
Deployment and routing: releasing builds as containers, the readiness
probe, the hostname routing table and the reverse proxy in front of it.
"""

from .routing import Route, RoutingTable, get_routing_table, hostname_for, project_slug
from .probe import ReadinessProbe
from .release import Deployer
from .proxy import HostRoutingMiddleware, close_proxy_client

__all__ = [
    "Route",
    "RoutingTable",
    "get_routing_table",
    "hostname_for",
    "project_slug",
    "ReadinessProbe",
    "Deployer",
    "HostRoutingMiddleware",
    "close_proxy_client",
]
