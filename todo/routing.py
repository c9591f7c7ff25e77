from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

from fastapi import FastAPI


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    endpoint: Callable[..., Any]
    name: str | None = None
    status_code: int | None = None
    response_model: Any = None
    tags: tuple[str, ...] = ()
    include_in_schema: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return self.method.upper(), self.path


@dataclass
class RouteTable:
    """
    Ordered list of (method, path, handler) entries built at startup.

    Handlers are registered explicitly; `mount` hands them to FastAPI in
    insertion order, so earlier routes win when two patterns overlap.
    """

    routes: list[Route] = field(default_factory=list)

    def add(self, method: str, path: str, endpoint: Callable[..., Any], **kwargs: Any) -> Route:
        route = Route(method.upper(), path, endpoint, **kwargs)
        if any(r.key == route.key for r in self.routes):
            raise ValueError(f"Route already registered: {route.method} {route.path}")
        self.routes.append(route)
        return route

    def extend(self, routes: Iterable[Route]) -> None:
        for r in routes:
            self.add(
                r.method,
                r.path,
                r.endpoint,
                name=r.name,
                status_code=r.status_code,
                response_model=r.response_model,
                tags=r.tags,
                include_in_schema=r.include_in_schema,
            )

    def __iter__(self) -> Iterator[Route]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    def mount(self, app: FastAPI) -> None:
        for r in self.routes:
            kwargs: dict[str, Any] = {
                "methods": [r.method],
                "name": r.name,
                "tags": list(r.tags) or None,
                "include_in_schema": r.include_in_schema,
            }
            if r.status_code is not None:
                kwargs["status_code"] = r.status_code
            if r.response_model is not None:
                kwargs["response_model"] = r.response_model
            app.add_api_route(r.path, r.endpoint, **kwargs)
