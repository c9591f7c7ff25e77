from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from uvicorn.protocols.utils import get_path_with_query_string

from todo import __version__
from todo.api import default_routes
from todo.db import Database
from todo.middleware import HTTPSRedirectMiddleware, RequestLoggingMiddleware
from todo.routing import RouteTable
from todo.settings import Settings


log = logging.getLogger("uvicorn.error")


@dataclass
class Services:
    """Everything the application needs, built once at startup."""

    settings: Settings
    database: Database
    routes: RouteTable


def register_services(settings: Settings, routes: RouteTable | None = None) -> Services:
    return Services(
        settings=settings,
        database=Database.from_settings(settings),
        routes=routes if routes is not None else default_routes(),
    )


def build(services: Services) -> FastAPI:
    settings = services.settings
    database = services.database

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # db init; an unreachable store aborts startup here
        await database.create_schema()
        log.info("database_ready url=%s", database.engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await database.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.database = database

    # added last runs first: logging wraps the redirect
    if settings.https_redirect:
        app.add_middleware(HTTPSRedirectMiddleware, https_port=settings.https_port)
    if settings.log_requests:
        app.add_middleware(RequestLoggingMiddleware, log_body=settings.log_request_body)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        safe_errors = jsonable_encoder(exc.errors())
        log.info("validation_422 %s errors=%s", get_path_with_query_string(request.scope), safe_errors)
        return JSONResponse(status_code=422, content={"detail": safe_errors})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.exception("unhandled_error %s %s", request.method, get_path_with_query_string(request.scope))
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    services.routes.mount(app)
    return app


def create_app(settings: Settings) -> FastAPI:
    return build(register_services(settings))
