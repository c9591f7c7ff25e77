from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from todo.db import get_session
from todo.models import TodoItem
from todo.routing import RouteTable
from todo.schemas import StatusResponse, TodoCreate, TodoOut, TodoUpdate


log = logging.getLogger("uvicorn.error")
PREFIX = "/v1/todos"


async def _get_todo(session: AsyncSession, todo_id: int) -> TodoItem:
    obj = await session.get(TodoItem, todo_id)
    if obj is None:
        raise HTTPException(status_code=404, detail=f"Todo {todo_id} not found")
    return obj


async def health() -> dict:
    return {"status": "ok"}


async def list_todos(
    done: bool | None = None,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[TodoOut]:
    stmt = select(TodoItem).order_by(TodoItem.id.asc()).offset(offset).limit(limit)
    if done is not None:
        stmt = stmt.where(TodoItem.done == done)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def get_todo(todo_id: int, session: AsyncSession = Depends(get_session)) -> TodoOut:
    return await _get_todo(session, todo_id)


async def create_todo(payload: TodoCreate, session: AsyncSession = Depends(get_session)) -> TodoOut:
    obj = TodoItem(title=payload.title, done=payload.done)
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    log.info("todo_created id=%s", obj.id)
    return obj


async def update_todo(todo_id: int, payload: TodoUpdate, session: AsyncSession = Depends(get_session)) -> TodoOut:
    obj = await _get_todo(session, todo_id)
    # null means "leave as is"; both columns are NOT NULL
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    for k, v in data.items():
        setattr(obj, k, v)
    await session.commit()
    await session.refresh(obj)
    return obj


async def delete_todo(todo_id: int, session: AsyncSession = Depends(get_session)) -> dict:
    obj = await _get_todo(session, todo_id)
    await session.delete(obj)
    await session.commit()
    log.info("todo_deleted id=%s", todo_id)
    return {"status": "deleted"}


def default_routes() -> RouteTable:
    table = RouteTable()
    table.add("GET", "/", health, name="root_health", include_in_schema=False)
    table.add("HEAD", "/", health, name="root_health_head", include_in_schema=False)
    table.add("GET", "/health", health, name="health", response_model=StatusResponse)

    tags = ("todos",)
    table.add("GET", PREFIX, list_todos, name="list_todos", response_model=list[TodoOut], tags=tags)
    table.add("POST", PREFIX, create_todo, name="create_todo", response_model=TodoOut, status_code=201, tags=tags)
    table.add("GET", PREFIX + "/{todo_id}", get_todo, name="get_todo", response_model=TodoOut, tags=tags)
    table.add("PUT", PREFIX + "/{todo_id}", update_todo, name="update_todo", response_model=TodoOut, tags=tags)
    table.add("DELETE", PREFIX + "/{todo_id}", delete_todo, name="delete_todo", tags=tags)
    return table
