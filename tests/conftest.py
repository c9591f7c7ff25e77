from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from todo.main import create_app
from todo.settings import Settings


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'todo.db'}"


@pytest.fixture
def settings(database_url) -> Settings:
    # a known HTTPS port, so plain-HTTP requests are redirected to the default port
    return Settings(database_url=database_url, https_port=443)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # https base so requests are not bounced by the redirect
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def http_client(app):
    with TestClient(app, base_url="http://testserver", follow_redirects=False) as c:
        yield c


@pytest.fixture
def app_log(caplog):
    # uvicorn's dictConfig stops "uvicorn.*" propagating once a server was configured
    logger = logging.getLogger("uvicorn.error")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger="uvicorn.error")
    yield caplog
    logger.removeHandler(caplog.handler)
