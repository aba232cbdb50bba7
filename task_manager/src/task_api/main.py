from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import StoreFault, TaskError
from .repositories import TaskStore, create_store
from .routers import pages as pages_router
from .routers import tasks as tasks_router
from .settings import Settings, configure_logging, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "tasks", "description": "Create, read, update and delete tasks."},
]


async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    """
    Map store errors to JSON responses.

    Response format:
        {"error": "<short message>"}                      for 400 / 404
        {"error": "<generic message>", "details": "..."}  for store faults (500)
    """
    content = {"error": exc.message}
    if isinstance(exc, StoreFault):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
        if exc.detail:
            content["details"] = exc.detail
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Give routing errors (unknown path, wrong method) the same {"error": ...} body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort boundary: any fault that escaped the store's own wrapping is
    logged and reported as a generic 500.
    """
    logger.error("%s %s failed unexpectedly", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Reject malformed ids and bodies with 400.

    Response format:
        {
            "error": "Invalid task id" | "Invalid request body",
            "details": [... pydantic/fastapi error details ...]
        }
    """
    errors = exc.errors()
    on_path = any(err.get("loc", ("",))[0] == "path" for err in errors)
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid task id" if on_path else "Invalid request body",
            "details": jsonable_encoder(errors),
        },
    )


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, store: Optional[TaskStore] = None) -> FastAPI:
    """
    Build the application.

    The store is created from settings unless one is passed in. It is opened
    when the application starts and closed when it shuts down.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    task_store = store if store is not None else create_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task_store.open()
        try:
            yield
        finally:
            task_store.close()

    app = FastAPI(
        title="Task Manager",
        description="Single-user task manager: a browser page backed by a small JSON API.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = task_store

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TaskError, task_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check(request: Request):
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health, the active backend and
            the number of stored tasks.
        """
        current: TaskStore = request.app.state.store
        return {"message": "Healthy", "backend": current.backend, "tasks": current.count()}

    app.include_router(pages_router.router)
    app.include_router(tasks_router.router)
    return app


app = create_app()
