"""
Listener side of the service: one uvicorn server for plain HTTP and, when a
certificate is configured, a second one for HTTPS on the same event loop.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Mapping, Sequence

import uvicorn
from fastapi import FastAPI

from todo.main import build, register_services
from todo.settings import ConfigurationError, Settings, configure


log = logging.getLogger("uvicorn.error")

# same code uvicorn.run uses when startup fails
STARTUP_FAILURE = 3


def create_servers(settings: Settings, app: FastAPI) -> list[uvicorn.Server]:
    common = dict(
        host=settings.host,
        log_level=settings.log_level,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )
    # only the first server drives the app lifespan
    servers = [uvicorn.Server(uvicorn.Config(app, port=settings.port, lifespan="on", **common))]
    if settings.tls_enabled:
        servers.append(
            uvicorn.Server(
                uvicorn.Config(
                    app,
                    port=settings.https_port,
                    lifespan="off",
                    ssl_certfile=settings.ssl_certfile,
                    ssl_keyfile=settings.ssl_keyfile,
                    **common,
                )
            )
        )
    return servers


async def serve(servers: Sequence[uvicorn.Server]) -> None:
    """
    Run all servers until any of them stops, then stop the rest.

    The first server owns the app lifespan. The others bind only after it has
    started, so a failed startup never leaves a listener accepting.
    """
    primary, *rest = servers
    tasks = [asyncio.create_task(primary.serve())]
    while not primary.started and not tasks[0].done():
        await asyncio.sleep(0.05)
    if primary.started:
        tasks += [asyncio.create_task(s.serve()) for s in rest]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for s in servers:
            s.should_exit = True
    await asyncio.gather(*tasks)


def run(args: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> None:
    """Configure, build and serve; blocks until shutdown."""
    settings = configure(sys.argv[1:] if args is None else args, environ)
    app = build(register_services(settings))
    servers = create_servers(settings, app)
    try:
        asyncio.run(serve(servers))
    except KeyboardInterrupt:
        pass
    if not all(s.started for s in servers):
        log.error("startup failed, exiting")
        sys.exit(STARTUP_FAILURE)


def main() -> None:
    try:
        run()
    except ConfigurationError as e:
        sys.exit(f"configuration error: {e}")
