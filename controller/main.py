"""Entry point for the Controller service."""

import errno
import os
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from controller import config
from controller.database import get_db_connection, init_database
from controller.repositories import FileRepository, UserRepository
from controller.routes.auth_routes import router as auth_router
from controller.routes.file_routes import router as file_router
from controller.schemas.common import ErrorResponse
from controller.service_locator import get_file_engine, set_auth_service, set_file_engine
from controller.services.auth_service import AuthService
from controller.exceptions import (
    ControllerException,
    UserAlreadyExistsError,
    InvalidCredentialsError,
    InvalidAPIKeyError,
)
from engine.atomic_writer import cleanup_stale_staging
from engine.exceptions import (
    AuthenticationError,
    FileConflictError,
    InvalidKeyError,
    InvalidNameError,
    KeyRequiredError,
    MalformedInputError,
    MetadataError,
    NotFoundError,
    RecordValidationError,
    StorageEngineError,
    StorageIOError,
    TruncatedStreamError,
    UnauthorizedError,
)
from engine.file_engine import FileEngine

logger = setup_logging('controller')
setup_logging('engine')

app = FastAPI(
    title="SealedFiles Controller",
    description="Encrypted file storage service",
    version="1.0.0"
)

# Looked up along the exception's MRO; a subclass entry overrides its base.
ENGINE_ERROR_RESPONSES = {
    TruncatedStreamError: (status.HTTP_400_BAD_REQUEST, "TRUNCATED_UPLOAD"),
    MalformedInputError: (status.HTTP_401_UNAUTHORIZED, "MALFORMED_CONTENT"),
    InvalidKeyError: (status.HTTP_400_BAD_REQUEST, "INVALID_KEY"),
    InvalidNameError: (status.HTTP_400_BAD_REQUEST, "INVALID_NAME"),
    KeyRequiredError: (status.HTTP_400_BAD_REQUEST, "KEY_REQUIRED"),
    RecordValidationError: (status.HTTP_400_BAD_REQUEST, "INVALID_RECORD"),
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, "AUTHENTICATION_FAILED"),
    UnauthorizedError: (status.HTTP_403_FORBIDDEN, "UNAUTHORIZED_ACCESS"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "FILE_NOT_FOUND"),
    FileConflictError: (status.HTTP_409_CONFLICT, "FILE_CONFLICT"),
    StorageIOError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR"),
    MetadataError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "METADATA_ERROR"),
}


def engine_error_response(exc: StorageEngineError):
    """
    Map a storage engine error to (status code, error code).

    A StorageIOError caused by a full disk maps to 507.
    """
    if isinstance(exc, StorageIOError) and not isinstance(exc, TruncatedStreamError):
        cause = exc.__cause__
        if isinstance(cause, OSError) and cause.errno == errno.ENOSPC:
            return status.HTTP_507_INSUFFICIENT_STORAGE, "STORAGE_FULL"

    for cls in type(exc).__mro__:
        if cls in ENGINE_ERROR_RESPONSES:
            return ENGINE_ERROR_RESPONSES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
def startup_event():
    """
    Initialize database and storage root, then build the storage engine.

    A storage root that cannot be prepared aborts startup.
    """
    logger.info("Controller service starting up...")

    init_database(config.DATABASE_PATH)
    logger.info(f"Database initialized at {config.DATABASE_PATH}")

    engine_config = config.load_engine_config()
    engine = FileEngine(engine_config, FileRepository(config.DATABASE_PATH))

    try:
        engine.layout.initialize()
    except StorageIOError as e:
        logger.critical(f"Cannot prepare storage root {engine_config.storage_root}: {e}")
        raise

    cleanup_stale_staging(engine.layout.root)

    set_file_engine(engine)
    set_auth_service(AuthService(UserRepository(config.DATABASE_PATH)))
    logger.info(f"Storage engine ready [root={engine.layout.root}, chunk_size={engine_config.chunk_size}]")


@app.exception_handler(UserAlreadyExistsError)
async def user_already_exists_handler(request: Request, exc: UserAlreadyExistsError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"User already exists error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "USER_ALREADY_EXISTS"}
    )


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid credentials error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "code": "INVALID_CREDENTIALS"}
    )


@app.exception_handler(InvalidAPIKeyError)
async def invalid_api_key_handler(request: Request, exc: InvalidAPIKeyError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid API key error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "code": "INVALID_API_KEY"}
    )


@app.exception_handler(ControllerException)
async def controller_exception_handler(request: Request, exc: ControllerException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Controller exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "INTERNAL_ERROR"}
    )


@app.exception_handler(StorageEngineError)
async def storage_engine_error_handler(request: Request, exc: StorageEngineError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    status_code, code = engine_error_response(exc)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            f"Storage engine error {code}: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
    else:
        logger.warning(
            f"Storage engine error {code}: {exc} [request_id={request_id}] path={request.url.path}"
        )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=str(exc), code=code).model_dump()
    )


app.include_router(auth_router)
app.include_router(file_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "SealedFiles Controller API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "controller"}


@app.get("/ready")
def ready_check():
    """
    Readiness check endpoint.
    Verifies database connectivity and a writable storage root.
    """
    try:
        with get_db_connection(config.DATABASE_PATH) as conn:
            conn.execute("SELECT 1").fetchone()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        root = get_file_engine().layout.root
        if root.is_dir() and os.access(root, os.W_OK | os.X_OK):
            storage_status = "ok"
        else:
            storage_status = f"error: {root} is not a writable directory"
    except Exception as e:
        storage_status = f"error: {str(e)}"

    ready = db_status == "ok" and storage_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "database": db_status,
            "storage": storage_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "controller.main:app",
        host=config.CONTROLLER_HOST,
        port=config.CONTROLLER_PORT,
    )


if __name__ == "__main__":
    main()
