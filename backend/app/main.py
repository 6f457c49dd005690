"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.api.router import api_router
from app.database import SessionLocal, init_db
from app.errors import StatementImportError
from app.services.import_cache import ImportResultCache
from app.services.import_service import PendingImportStore
from app.services.network import NetworkMonitor
from app.services.queue_storage import make_queue_repository
from app.services.receipt_storage import LocalReceiptStore
from app.services.upload_queue import OfflineUploadQueue

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_upload_queue(network: NetworkMonitor) -> OfflineUploadQueue:
    repository = make_queue_repository(
        settings.upload_queue_backend,
        session_factory=SessionLocal,
        path=settings.upload_queue_file,
    )
    return OfflineUploadQueue(
        repository=repository,
        uploader=LocalReceiptStore(settings.receipts_path),
        network=network,
        max_retries=settings.upload_max_retries,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    network = NetworkMonitor(online=True)
    app.state.network = network
    app.state.import_cache = ImportResultCache(ttl_minutes=settings.cache_ttl_minutes)
    app.state.pending_imports = PendingImportStore(ttl_minutes=settings.cache_ttl_minutes)
    app.state.upload_queue = build_upload_queue(network)
    app.state.upload_queue.start_network_listener(
        auto_process_on_online=settings.upload_auto_process_on_online
    )
    logger.info("%s started", settings.app_name)

    yield

    app.state.upload_queue.stop_network_listener()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Shared expense tracking for couples with bank statement import",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StatementImportError)
async def statement_import_error_handler(request: Request, exc: StatementImportError):
    return JSONResponse(status_code=422, content={"detail": exc.to_dict()})


# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/api/v1/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "app_name": settings.app_name
    }
