"""
Todo Service: HTTP API over a Firestore collection of tasks.

Launch:
    todo-app                        # console script
    python -m todo_app.main --port 9000
    uvicorn todo_app.main:app       # connects to the store on startup

Endpoints:
    GET    /              → Home page
    GET    /todo          → List tasks
    POST   /todo          → Create a task
    PUT    /todo/{id}     → Update title and completed
    DELETE /todo/{id}     → Delete a task
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse

from todo_app.config import Settings, configure_logging
from todo_app.schema import Message, TaskCreate, TaskCreated, TaskList, TaskUpdate
from todo_app.store import (
    InvalidTaskIdError,
    StoreConnectionError,
    StoreError,
    TaskStore,
    connect_store,
)

logger = logging.getLogger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")


class APIError(Exception):
    """Rendered as ``{"message": ..., "error": ...}`` with the given status."""

    def __init__(self, status_code: int, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


def get_task_id(id: str, store: TaskStore = Depends(get_store)) -> str:
    try:
        return store.parse_id(id)
    except InvalidTaskIdError:
        raise APIError(400, "The id is invalid") from None


def _store_failure(message: str, err: StoreError) -> APIError:
    logger.error("%s: %s", message, err)
    return APIError(500, message, str(err))


# ─────────────────────────────────────────────────────────────
#  Handlers
# ─────────────────────────────────────────────────────────────

def home():
    return FileResponse(os.path.join(STATIC_DIR, "home.html"))


def fetch_todos(store: TaskStore = Depends(get_store)) -> TaskList:
    try:
        tasks = store.list_tasks()
    except StoreError as e:
        raise _store_failure("Failed to fetch todos", e)
    return TaskList(data=tasks)


def create_todo(body: TaskCreate, store: TaskStore = Depends(get_store)) -> TaskCreated:
    if body.title == "":
        raise APIError(400, "The title is required")
    try:
        task = store.insert_task(body.title)
    except StoreError as e:
        raise _store_failure("Failed to save todo", e)
    logger.info("Created todo %s", task.id)
    return TaskCreated(message="Todo created successfully", todo_id=task.id)


def update_todo(
    body: TaskUpdate,
    task_id: str = Depends(get_task_id),
    store: TaskStore = Depends(get_store),
) -> Message:
    if body.title == "":
        raise APIError(400, "The title field is missing")
    try:
        store.update_task(task_id, body.title, body.completed)
    except StoreError as e:
        raise _store_failure("Failed to update todo", e)
    return Message(message="Todo updated successfully")


def delete_todo(task_id: str = Depends(get_task_id), store: TaskStore = Depends(get_store)) -> Message:
    try:
        store.delete_task(task_id)
    except StoreError as e:
        raise _store_failure("Failed to delete todo", e)
    return Message(message="Todo deleted successfully")


# ─────────────────────────────────────────────────────────────
#  App Setup
# ─────────────────────────────────────────────────────────────

async def _api_error(request: Request, exc: APIError) -> JSONResponse:
    content = {"message": exc.message}
    if exc.error is not None:
        content["error"] = exc.error
    return JSONResponse(status_code=exc.status_code, content=content)


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "message": "The request body is invalid",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def _log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms",
        request.method, request.url.path, response.status_code, elapsed,
    )
    return response


def create_app(store: Optional[TaskStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around an explicit store.

    Without a store, one is connected from ``settings`` (or the environment)
    during startup and closed on shutdown; a connection failure aborts
    startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store is not None:
            app.state.store = store
            yield
            return
        config = settings or Settings.from_env()
        configure_logging(config.log_level)
        owned = connect_store(config)
        app.state.store = owned
        try:
            yield
        finally:
            owned.close()
            logger.info("Store connection closed")

    app = FastAPI(title="Todo Service", version="1.0.0", lifespan=lifespan)
    if store is not None:
        app.state.store = store

    app.add_exception_handler(APIError, _api_error)
    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.middleware("http")(_log_requests)

    app.add_api_route("/", home, methods=["GET"], include_in_schema=False)
    app.add_api_route("/todo", fetch_todos, methods=["GET"], response_model=TaskList)
    app.add_api_route(
        "/todo", create_todo, methods=["POST"],
        status_code=201, response_model=TaskCreated,
    )
    app.add_api_route("/todo/{id}", update_todo, methods=["PUT"], response_model=Message)
    app.add_api_route("/todo/{id}", delete_todo, methods=["DELETE"], response_model=Message)
    return app


# ─────────────────────────────────────────────────────────────
#  Entry point
# ─────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="todo-app", description="Todo HTTP service")
    parser.add_argument("--host", help="listen host (default: $TODO_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="listen port (default: $PORT or 9000)")
    args = parser.parse_args(argv)
    if args.port is not None and not 0 < args.port < 65536:
        parser.error(f"--port must be between 1 and 65535, got {args.port}")

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    try:
        store = connect_store(settings)
    except StoreConnectionError as e:
        logger.critical("Startup failed: %s", e)
        return 1

    import uvicorn

    host = args.host or settings.host
    port = args.port if args.port is not None else settings.port
    logger.info("Listening on %s:%d", host, port)
    try:
        uvicorn.run(
            create_app(store, settings),
            host=host,
            port=port,
            timeout_keep_alive=settings.idle_timeout,
            timeout_graceful_shutdown=settings.shutdown_grace,
            log_level=settings.log_level.lower(),
            access_log=False,
        )
    finally:
        store.close()
    logger.info("Server stopped")
    return 0


app = create_app()


if __name__ == "__main__":
    sys.exit(main())
