
import logging
import time
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.database import init_db, check_db_connection
from .core.errors import AppError
from .routers import tags, tasks, users

settings = get_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Task & Tag Service",
    description="Multi-user task management with shared, case-insensitive tags",
    version=settings.service_version
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.auth_router, prefix=settings.api_prefix + "/auth", tags=["auth"])
app.include_router(users.router, prefix=settings.api_prefix + "/users", tags=["users"])
app.include_router(tasks.router, prefix=settings.api_prefix + "/tasks", tags=["tasks"])
app.include_router(tags.router, prefix=settings.api_prefix + "/tags", tags=["tags"])


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map service errors to their status code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report every invalid field, not just the first one"""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": location[0] if location else "body",
            "message": error.get("msg", "Invalid input"),
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation error", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "An unexpected internal server error occurred."},
    )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info("Starting Task & Tag Service...")
    if await init_db():
        logger.info("Database initialized successfully")
    else:
        logger.error("Database initialization failed")
    logger.info("Task & Tag Service startup completed")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "status": "running",
        "message": "Task & Tag Service is operational. Visit /docs for the API reference."
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    db_healthy = await check_db_connection()
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "status": "healthy" if db_healthy else "unhealthy",
        "database": "connected" if db_healthy else "disconnected",
        "timestamp": time.time()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tasktags.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
