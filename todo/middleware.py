from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp


# NOTE: don't use uvicorn.access here; its formatter expects access-log arguments.
logger = logging.getLogger("uvicorn.error")

MAX_LOGGED_BODY = 2048


def _safe_json_body(body_bytes: bytes) -> Any:
    if not body_bytes:
        return None
    text = body_bytes[:MAX_LOGGED_BODY].decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return {"_raw": text}


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """
    Answer plain-HTTP requests with a 307 to the https:// URL.

    307 keeps the method and body, and the raw path/query are copied verbatim.
    A `https_port` of 443 leaves the port out of the target. With no
    `https_port` there is nowhere to send the client, so requests pass
    through and a warning is logged once.
    """

    def __init__(self, app: ASGIApp, https_port: int | None = None) -> None:
        super().__init__(app)
        self.https_port = https_port
        self._warned = False

    def redirect_url(self, request: Request) -> str:
        scope = request.scope
        host = request.url.hostname or "localhost"
        if ":" in host:
            host = f"[{host}]"
        netloc = host if self.https_port == 443 else f"{host}:{self.https_port}"

        # request.url is rebuilt from the decoded path; keep the client's bytes
        raw_path = scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = quote(scope["path"])
        query = scope.get("query_string", b"").decode("latin-1")
        return f"https://{netloc}{path}?{query}" if query else f"https://{netloc}{path}"

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        if request.url.scheme == "https":
            return await call_next(request)
        if self.https_port is None:
            if not self._warned:
                logger.warning("https_redirect disabled: no HTTPS port configured")
                self._warned = True
            return await call_next(request)
        target = self.redirect_url(request)
        logger.debug("https_redirect %s -> %s", request.url, target)
        return RedirectResponse(target, status_code=307)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, log_body: bool = False) -> None:
        super().__init__(app)
        self.log_body = log_body

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        start = time.perf_counter()
        body = b""
        if self.log_body and request.method.upper() in ("POST", "PUT", "PATCH"):
            body = await request.body()

            # Re-create request so downstream can read body again
            async def receive() -> dict:
                return {"type": "http.request", "body": body, "more_body": False}

            request = Request(request.scope, receive)

        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            dur_ms = int((time.perf_counter() - start) * 1000)
            client = request.client.host if request.client else "-"
            base = {
                "method": request.method,
                "path": request.url.path,
                "client": client,
                "ms": dur_ms,
                "status": getattr(response, "status_code", None),
            }
            if self.log_body:
                base["json"] = _safe_json_body(body)
            logger.info("request %s", base)
