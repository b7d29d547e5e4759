"""Tests for hostname routing and the reverse proxy middleware."""

import json

import httpx
import pytest
from fastapi import FastAPI

from pushdeploy.core.deployer import HostRoutingMiddleware, Route, RoutingTable, hostname_for, project_slug


def echo(request: httpx.Request) -> httpx.Response:
    body = {
        "url": str(request.url),
        "method": request.method,
        "headers": dict(request.headers),
        "content": request.content.decode(),
    }
    return httpx.Response(
        200,
        content=json.dumps(body).encode(),
        headers=[
            ("content-type", "application/json"),
            ("set-cookie", "a=1"),
            ("set-cookie", "b=2"),
            ("connection", "keep-alive"),
        ],
    )


def build_app(routing: RoutingTable, transport: httpx.AsyncBaseTransport) -> FastAPI:
    app = FastAPI()

    @app.get("/api/ping")
    async def ping():
        return {"pong": True}

    app.add_middleware(HostRoutingMiddleware, routing=routing, transport=transport)
    return app


async def request(app, method, path, host, **kwargs):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        return await client.request(method, path, headers={"host": host}, **kwargs)


class TestNames:

    def test_slug(self):
        assert project_slug("alice", "my.site") == "alice-my-site"
        assert project_slug("Alice", "my_site") == "alice-my-site"

    def test_hostname_uses_routing_domain(self):
        assert hostname_for("alice-site") == "alice-site.apps.test"
        assert hostname_for("alice-site", domain="example.org") == "alice-site.example.org"


class TestRoutingTable:

    def test_lookup_ignores_port_and_case(self, routing):
        routing.set(Route("p1", "alice-site.apps.test", "d1", "10.0.0.1", 8000))
        assert routing.lookup("Alice-Site.apps.test:8080").deployment_id == "d1"

    def test_set_replaces(self, routing):
        routing.set(Route("p1", "alice-site.apps.test", "d1", "10.0.0.1", 8000))
        routing.set(Route("p1", "alice-site.apps.test", "d2", "10.0.0.2", 8000))
        assert routing.lookup("alice-site.apps.test").deployment_id == "d2"
        assert len(routing.routes()) == 1

    def test_remove_project(self, routing):
        routing.set(Route("p1", "alice-site.apps.test", "d1", "10.0.0.1", 8000))
        assert routing.remove_project("p1").deployment_id == "d1"
        assert routing.for_project("p1") is None

    def test_is_project_host(self, routing):
        assert routing.is_project_host("anything.apps.test")
        assert not routing.is_project_host("apps.test")
        assert not routing.is_project_host("testserver")


@pytest.mark.usefixtures("proxy_client_reset")
class TestHostRoutingMiddleware:

    async def test_api_host_passes_through(self, routing):
        app = build_app(routing, httpx.MockTransport(echo))
        response = await request(app, "GET", "/api/ping", "testserver")
        assert response.json() == {"pong": True}

    async def test_unknown_project_host(self, routing):
        app = build_app(routing, httpx.MockTransport(echo))
        response = await request(app, "GET", "/", "ghost-site.apps.test")

        assert response.status_code == 404
        assert response.json()["code"] == 404

    async def test_forwards_to_active_instance(self, routing):
        routing.set(Route("p1", "alice-site.apps.test", "d1", "10.0.0.7", 8000))
        app = build_app(routing, httpx.MockTransport(echo))

        response = await request(app, "POST", "/submit?x=1", "alice-site.apps.test", content=b"payload")
        upstream = response.json()

        assert response.status_code == 200
        assert upstream["url"] == "http://10.0.0.7:8000/submit?x=1"
        assert upstream["method"] == "POST"
        assert upstream["content"] == "payload"
        assert upstream["headers"]["x-forwarded-host"] == "alice-site.apps.test"
        assert upstream["headers"]["host"] == "10.0.0.7:8000"
        assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]
        assert "keep-alive" not in response.headers.get("connection", "")

    async def test_unreachable_instance(self, routing):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        routing.set(Route("p1", "alice-site.apps.test", "d1", "10.0.0.7", 8000))
        app = build_app(routing, httpx.MockTransport(refuse))

        response = await request(app, "GET", "/", "alice-site.apps.test")
        assert response.status_code == 502
