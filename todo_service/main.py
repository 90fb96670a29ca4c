import logging
import time
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from todo_service import schemas
from todo_service.config import Settings, get_settings
from todo_service.errors import (
    NotFoundError,
    TaskStoreError,
    ValidationError,
    SERVER_ERROR_MESSAGE,
)
from todo_service.logger import setup_logging
from todo_service.store import TaskStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> TaskStore:
    """Task store dependency"""
    return request.app.state.store


def _row_id(task_id: str) -> int:
    """Task id from the path; a value that is not an integer matches no row"""
    try:
        return int(task_id)
    except ValueError:
        raise NotFoundError(task_id) from None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _describe_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        cause = err.get("ctx", {}).get("error")
        if isinstance(cause, ValidationError):
            messages.append(cause.message)
            continue
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        if err.get("type") == "missing" and field in ("", "title"):
            messages.append("El título es requerido")
        else:
            messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Solicitud inválida"))
    return "; ".join(messages) or "Solicitud inválida"


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    message = _describe_validation_error(exc)
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    return _error(status.HTTP_400_BAD_REQUEST, message)


async def validation_exception_handler(request: Request, exc: ValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, exc.message)


async def not_found_exception_handler(request: Request, exc: NotFoundError):
    logger.info(f"Task {exc.task_id} not found")
    return _error(status.HTTP_404_NOT_FOUND, exc.message)


async def store_exception_handler(request: Request, exc: TaskStoreError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc.message}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)


async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} in {process_time:.3f}s"
    )
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Health check endpoint
@router.get("/health", response_model=schemas.HealthStatus, response_model_exclude_none=True, tags=["Health"])
def health_check(store: TaskStore = Depends(get_store)):
    """Check the service and its database"""
    try:
        store.ping()
        return schemas.HealthStatus(status="healthy", database="connected", timestamp=datetime.now(timezone.utc))
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        message = e.message if isinstance(e, TaskStoreError) else SERVER_ERROR_MESSAGE
        body = schemas.HealthStatus(status="unhealthy", database="disconnected", error=message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json", exclude_none=True)
        )


@router.get("/", tags=["Root"])
def read_root(request: Request):
    """Root endpoint"""
    settings: Settings = request.app.state.settings
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
        "docs": "/docs",
        "health": "/health"
    }


# Task endpoints
@router.get("/tasks", response_model=List[schemas.Task], tags=["Tasks"])
def read_tasks(store: TaskStore = Depends(get_store)):
    """Get all tasks, newest first"""
    return store.list_all()


@router.get(
    "/tasks/{task_id}",
    response_model=schemas.Task,
    responses={404: {"model": schemas.ErrorBody}},
    tags=["Tasks"]
)
def read_task(task_id: str, store: TaskStore = Depends(get_store)):
    """Get a specific task by ID"""
    row_id = _row_id(task_id)
    task = store.get_by_id(row_id)
    if task is None:
        raise NotFoundError(row_id)
    return task


@router.post(
    "/tasks",
    response_model=schemas.Task,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": schemas.ErrorBody}},
    tags=["Tasks"]
)
def create_task(task: schemas.TaskCreate, store: TaskStore = Depends(get_store)):
    """Create a new task"""
    return store.create(task.title)


@router.put(
    "/tasks/{task_id}",
    response_model=schemas.Task,
    responses={400: {"model": schemas.ErrorBody}, 404: {"model": schemas.ErrorBody}},
    tags=["Tasks"]
)
def update_task(task_id: str, patch: schemas.TaskPatch, store: TaskStore = Depends(get_store)):
    """Update the title and/or completed flag of a task"""
    return store.update(_row_id(task_id), patch)


@router.delete(
    "/tasks/{task_id}",
    response_model=schemas.TaskDeleted,
    responses={404: {"model": schemas.ErrorBody}},
    tags=["Tasks"]
)
def delete_task(task_id: str, store: TaskStore = Depends(get_store)):
    """Delete a task"""
    deleted = store.delete(_row_id(task_id))
    return schemas.TaskDeleted(message="Tarea eliminada correctamente", deleted_task=deleted)


def create_app(store: Optional[TaskStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API around a task store.

    When no store is given one is created from settings and disposed on
    shutdown; a store passed in stays owned by the caller.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    owns_store = store is None
    if store is None:
        store = TaskStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events"""
        logger.info(f"Starting {settings.app_name}")
        try:
            app.state.store.initialize(seed=settings.seed_sample_data)
            logger.info("Database initialized successfully")
        except TaskStoreError as e:
            logger.error(f"Failed to initialize database: {e.message}")
            raise

        yield

        logger.info(f"Shutting down {settings.app_name}")
        if owns_store:
            app.state.store.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="To-do list API",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(NotFoundError, not_found_exception_handler)
    app.add_exception_handler(TaskStoreError, store_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(router)
    return app


app = create_app()
