"""Entry point for the file sync server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from filesync.blob_store import LocalBlobStore
from filesync.config import BLOB_STORAGE_PATH, SERVER_HOST, SERVER_PORT
from filesync.database import init_database
from filesync.exceptions import (
    FileSyncException,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceConflictError,
    StorageIOError,
    ValidationError,
)
from filesync.routes.file_routes import router as file_router
from filesync.routes.sync_routes import router as sync_router
from filesync.service_locator import set_blob_store

logger = setup_logging('filesync')

app = FastAPI(
    title="File Sync Server",
    description="Checksum-based file storage and multi-round archive synchronization",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    owner_id = request.query_params.get('owner_id')

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}] [owner_id={owner_id or 'none'}]"
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
async def startup_event():
    """
    Initialize database and blob storage on application startup.
    """
    logger.info("File sync server starting up...")

    init_database()
    logger.info("Database initialized")

    blob_store = LocalBlobStore(BLOB_STORAGE_PATH)
    blob_store.ensure_directory()
    set_blob_store(blob_store)
    logger.info("Blob storage ready")


def _error_response(exc: FileSyncException, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "message": str(exc), "code": exc.code}
    )


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Payload too large: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Validation error: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Not found: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(PersistenceConflictError)
async def persistence_conflict_handler(request: Request, exc: PersistenceConflictError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Persistence conflict: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(exc, status.HTTP_409_CONFLICT)


@app.exception_handler(StorageIOError)
async def storage_io_handler(request: Request, exc: StorageIOError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Storage I/O error: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(FileSyncException)
async def file_sync_exception_handler(request: Request, exc: FileSyncException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unhandled file sync error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


app.include_router(file_router)
app.include_router(sync_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "File Sync Server API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "filesync"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies the metadata database answers queries.
    """
    from filesync.database import get_db_connection

    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1 FROM files LIMIT 1")
        db_status = "ok"
    except Exception as e:
        logger.error(f"Readiness probe failed: {e}")
        db_status = "error"

    ready = db_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={"ready": ready, "database": db_status}
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "filesync.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
    )


if __name__ == "__main__":
    main()
