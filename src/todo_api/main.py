import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import ConflictError, NotFoundError, PayloadValidationError, StorageError
from .logging_config import configure_logging
from .routers import export as export_router
from .routers import search as search_router
from .routers import tags as tags_router
from .routers import todos as todos_router
from .settings import get_settings
from .validation import field_errors

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "todos",
        "description": "CRUD operations for Todo items with tag, priority, completion and text filters.",
    },
    {"name": "tags", "description": "Tag management; tags can be attached to any number of todos."},
    {"name": "search", "description": "Substring search across todo titles and descriptions."},
    {"name": "export", "description": "Full dataset export as JSON or CSV."},
]

_settings = get_settings()
configure_logging(_settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Todo Backend",
    description="Backend API service for managing todos and tags with pluggable storage backends.",
    version="0.2.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _validation_response(detail: list) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": detail,
        },
    )


# Global exception handlers for consistent JSON error bodies
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": [{"field": "title", "message": "...", "type": "..."}, ...]
        }
    """
    return _validation_response(field_errors(exc.errors()))


@app.exception_handler(PayloadValidationError)
async def payload_validation_handler(request: Request, exc: PayloadValidationError) -> JSONResponse:
    return _validation_response(exc.errors)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "NotFound", "detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": "Conflict", "detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "StorageError", "detail": "Internal storage error"},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


@app.get("/health", summary="Liveness", tags=["health"])
def liveness():
    return {"status": "ok"}


# Include routers
app.include_router(todos_router.router)
app.include_router(tags_router.router)
app.include_router(search_router.router)
app.include_router(export_router.router)
