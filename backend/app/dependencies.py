"""
FastAPI dependencies.
"""

from typing import Generator
from fastapi import Request
from sqlalchemy.orm import Session
from app.database import SessionLocal
from app.services.import_cache import ImportResultCache
from app.services.import_service import PendingImportStore
from app.services.network import NetworkMonitor
from app.services.upload_queue import OfflineUploadQueue


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_import_cache(request: Request) -> ImportResultCache:
    return request.app.state.import_cache


def get_pending_imports(request: Request) -> PendingImportStore:
    return request.app.state.pending_imports


def get_network(request: Request) -> NetworkMonitor:
    return request.app.state.network


def get_upload_queue(request: Request) -> OfflineUploadQueue:
    return request.app.state.upload_queue
