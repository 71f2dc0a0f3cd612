"""Entry point for the transfer service."""

import uvicorn
import time
import uuid
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from transfer import service_locator
from transfer.config import TRANSFER_HOST, TRANSFER_PORT
from transfer.database import init_database
from transfer.events import create_event_emitter
from transfer.exceptions import (
    TransferError,
    InputError,
    NotFoundError,
    StorageError,
)
from transfer.ledger import SqliteMetadataLedger
from transfer.object_store_client import ObjectStoreClient, ensure_bucket
from transfer.routes.file_routes import router as file_router
from transfer.schemas.common import ErrorResponse

logger = setup_logging('transfer')

app = FastAPI(
    title="Chunked Transfer Service",
    description="Chunked file upload and reassembled download over an object store and metadata ledger",
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
async def startup_event():
    """
    Wire collaborators on application startup.

    Every step is attempted independently; a failure is logged and the
    service keeps serving whatever does not depend on it.
    """
    logger.info("Transfer service starting up...")

    try:
        init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)

    if service_locator.get_ledger() is None:
        service_locator.set_ledger(SqliteMetadataLedger())

    if service_locator.get_chunk_store() is None:
        service_locator.set_chunk_store(ObjectStoreClient())

    try:
        await ensure_bucket(service_locator.get_chunk_store())
        logger.info("Object store bucket ready")
    except Exception as e:
        logger.error(f"Failed to provision object store bucket: {e}")
        logger.info("Continuing without a verified bucket")

    if service_locator.get_event_emitter() is None:
        try:
            service_locator.set_event_emitter(create_event_emitter())
        except Exception as e:
            logger.error(f"Failed to configure event bus: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Transfer service shutting down...")

    emitter = service_locator.get_event_emitter()
    if emitter:
        await emitter.close()
        logger.info("Event emitter closed")

    store = service_locator.get_chunk_store()
    if store:
        await store.close()
        logger.info("Object store client closed")


def _error_response(request: Request, exc: Exception, status_code: int, label: str, error: bool = False):
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{label}: {exc} [request_id={request_id}] path={request.url.path}"
    if error:
        logger.error(message, exc_info=True)
    else:
        logger.warning(message)
    return JSONResponse(status_code=status_code, content=ErrorResponse(detail=str(exc)).model_dump())


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "Input error")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "Not found")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage error", error=True)


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "Transfer error", error=True)


@app.exception_handler(NotImplementedError)
async def not_implemented_handler(request: Request, exc: NotImplementedError):
    return _error_response(request, exc, status.HTTP_501_NOT_IMPLEMENTED, "Not implemented")


app.include_router(file_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Chunked Transfer Service API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "transfer"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies ledger and object store connectivity.
    """
    ledger = service_locator.get_ledger()
    store = service_locator.get_chunk_store()

    ledger_status = "ok" if ledger is not None and await ledger.ping() else "unavailable"
    store_status = "ok" if store is not None and await store.ping() else "unavailable"

    ready = ledger_status == "ok" and store_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "ledger": ledger_status,
            "object_store": store_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "transfer.main:app",
        host=TRANSFER_HOST,
        port=TRANSFER_PORT,
    )


if __name__ == "__main__":
    main()
