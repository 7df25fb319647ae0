"""Tests for request ID middleware."""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from marlowequill.app.middleware.request_id import RequestIdMiddleware, get_request_id


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"request_id": get_request_id(request)}

    return TestClient(app)


class TestRequestIdMiddleware:
    """Test request ID propagation."""

    def test_generates_id_when_missing(self, client):
        resp = client.get("/echo")

        request_id = resp.headers["X-Request-ID"]
        assert len(request_id) == 36
        assert resp.json()["request_id"] == request_id

    def test_reuses_incoming_id(self, client):
        resp = client.get("/echo", headers={"X-Request-ID": "abc-123"})

        assert resp.headers["X-Request-ID"] == "abc-123"
        assert resp.json()["request_id"] == "abc-123"

    def test_replaces_overlong_id(self, client):
        resp = client.get("/echo", headers={"X-Request-ID": "x" * 500})

        assert resp.headers["X-Request-ID"] != "x" * 500
        assert len(resp.headers["X-Request-ID"]) == 36

    def test_each_request_gets_its_own_id(self, client):
        first = client.get("/echo").headers["X-Request-ID"]
        second = client.get("/echo").headers["X-Request-ID"]
        assert first != second


def test_get_request_id_without_middleware():
    app = FastAPI()

    @app.get("/echo")
    async def echo(request: Request):
        return {"request_id": get_request_id(request)}

    assert TestClient(app).get("/echo").json() == {"request_id": "unknown"}
