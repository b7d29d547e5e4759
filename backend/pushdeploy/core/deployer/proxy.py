"""
Host-based reverse proxy

Requests whose Host is ``<owner>-<project>.<routing domain>`` are forwarded
to the project's active instance; everything else reaches the API.
"""

import logging
from typing import Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware

from pushdeploy.config.settings import RoutingConfig
from pushdeploy.core.deployer.routing import RoutingTable, get_routing_table
from pushdeploy.utils.model.response_code import ResponseCode
from pushdeploy.utils.model.response_model import BaseResponse

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
})

BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_client: Optional[httpx.AsyncClient] = None


def get_proxy_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=RoutingConfig.PROXY_TIMEOUT,
            follow_redirects=False,
            transport=transport,
        )
    return _client


async def close_proxy_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _error(code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=code, content=BaseResponse.error(code=code, message=message).model_dump())


class HostRoutingMiddleware(BaseHTTPMiddleware):
    """Forward project-hostname traffic to the active deployment"""

    def __init__(self, app, routing: Optional[RoutingTable] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(app)
        self._routing = routing
        self._transport = transport

    @property
    def routing(self) -> RoutingTable:
        return self._routing or get_routing_table()

    async def dispatch(self, request: Request, call_next):
        host = request.headers.get("host", "")
        if not RoutingConfig.PROXY_ENABLED or not self.routing.is_project_host(host):
            return await call_next(request)

        route = self.routing.lookup(host)
        if route is None:
            return _error(ResponseCode.NOT_FOUND, f"No active deployment for {host}")

        client = get_proxy_client(self._transport)
        url = httpx.URL(route.address).copy_with(
            path=request.url.path,
            query=request.url.query.encode("utf-8"),
        )
        headers = [
            (name, value) for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]
        headers.append(("x-forwarded-host", host))
        headers.append(("x-forwarded-proto", request.url.scheme))
        if request.client:
            headers.append(("x-forwarded-for", request.client.host))

        content = None if request.method in BODYLESS_METHODS else request.stream()
        upstream_request = client.build_request(request.method, url, headers=headers, content=content)
        try:
            upstream = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(f"Upstream {route.address} for {host} unreachable: {e.__class__.__name__}: {e}")
            return _error(ResponseCode.BAD_GATEWAY, f"Deployment for {host} is unreachable")

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # Raw pairs keep repeated headers such as Set-Cookie
        response.raw_headers = [
            (name, value) for name, value in upstream.headers.raw
            if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
        ]
        return response
