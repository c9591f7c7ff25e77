from __future__ import annotations

import dataclasses

import pytest
from fastapi.testclient import TestClient

from todo.main import create_app


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE"])
def test_plain_http_is_redirected_preserving_path_and_query(http_client, method):
    resp = http_client.request(method, "/v1/todos/3?done=true&x=%20y")
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://testserver/v1/todos/3?done=true&x=%20y"


def test_unknown_path_is_redirected_too(http_client):
    resp = http_client.get("/does/not/exist")
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://testserver/does/not/exist"


def test_redirect_does_not_reach_handlers(http_client):
    resp = http_client.post("/v1/todos", json={"title": "never stored"})
    assert resp.status_code == 307
    assert http_client.get("https://testserver/v1/todos").json() == []


def test_redirect_uses_configured_https_port(settings):
    app = create_app(dataclasses.replace(settings, https_port=8443))
    with TestClient(app, base_url="http://testserver:8080", follow_redirects=False) as c:
        resp = c.get("/health?a=1")
    assert resp.headers["location"] == "https://testserver:8443/health?a=1"


def test_redirect_followed_keeps_method(app):
    with TestClient(app, base_url="http://testserver") as c:
        resp = c.post("/v1/todos", json={"title": "via redirect"})
    assert resp.status_code == 201
    assert resp.json()["title"] == "via redirect"


def test_https_passes_through(client):
    assert client.get("/health").status_code == 200


def test_redirect_can_be_disabled(settings):
    app = create_app(dataclasses.replace(settings, https_redirect=False))
    with TestClient(app, base_url="http://testserver", follow_redirects=False) as c:
        assert c.get("/health").status_code == 200


def test_requests_are_logged(client, app_log):
    client.get("/v1/todos/77")
    lines = [r.getMessage() for r in app_log.records if r.getMessage().startswith("request ")]
    assert any("'/v1/todos/77'" in line and "'status': 404" in line for line in lines)


def test_request_body_logging_keeps_body_readable(settings, app_log):
    app = create_app(dataclasses.replace(settings, log_request_body=True))
    with TestClient(app, base_url="https://testserver") as c:
        resp = c.post("/v1/todos", json={"title": "logged"})
    assert resp.status_code == 201
    assert any("'json': {'title': 'logged'}" in r.getMessage() for r in app_log.records)


@pytest.mark.parametrize("path", ["/v1/todos/a%2Fb", "/x%3Fy", "/x%23frag", "/caf%C3%A9%20bar"])
def test_redirect_keeps_percent_encoded_path(http_client, path):
    resp = http_client.get(path)
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://testserver" + path


def test_encoded_path_and_query_together(http_client):
    resp = http_client.get("/v1/todos/a%2Fb?next=%2Fhome&q=1")
    assert resp.headers["location"] == "https://testserver/v1/todos/a%2Fb?next=%2Fhome&q=1"


def test_default_https_port_is_left_out(settings):
    app = create_app(dataclasses.replace(settings, https_port=443))
    with TestClient(app, base_url="http://testserver:8080", follow_redirects=False) as c:
        resp = c.get("/health?a=1")
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://testserver/health?a=1"


def test_no_https_port_passes_through_and_warns_once(settings, app_log):
    app = create_app(dataclasses.replace(settings, https_port=None))
    with TestClient(app, base_url="http://testserver", follow_redirects=False) as c:
        assert c.get("/health").status_code == 200
        assert c.get("/v1/todos").status_code == 200
    warnings = [r for r in app_log.records if "no HTTPS port configured" in r.getMessage()]
    # the same record may reach the capture handler twice, via propagation
    assert len({id(r) for r in warnings}) == 1
