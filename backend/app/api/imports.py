"""
Import API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_import_cache, get_pending_imports
from app.schemas.import_file import (
    ImportConfig,
    ImportFilters,
    ImportPreviewResponse,
    ImportConfirmRequest,
    ImportStatusResponse,
    ImportLogResponse
)
from app.services import import_service
from app.services.import_cache import ImportResultCache
from app.services.import_service import PendingImportStore

router = APIRouter(prefix="/imports", tags=["imports"])

ALLOWED_EXTENSIONS = ['.csv', '.txt', '.pdf']
MAX_UPLOAD_BYTES = 20 * 1024 * 1024


@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_import(
    file: UploadFile = File(...),
    couple_id: str = Form(...),
    paid_by: str = Form(...),
    partner_id: Optional[str] = Form(None),
    date_format: str = Form("auto"),
    default_category_key: str = Form("other"),
    split_percentage: int = Form(50),
    exclude_credits: bool = Form(False),
    db: Session = Depends(get_db),
    cache: ImportResultCache = Depends(get_import_cache),
    pending: PendingImportStore = Depends(get_pending_imports)
):
    """Parse a bank statement and return rows annotated with categories and duplicates"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = '.' + file.filename.split('.')[-1].lower() if '.' in file.filename else ''
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type not supported. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )

    try:
        config = ImportConfig(
            couple_id=couple_id,
            paid_by=paid_by,
            partner_id=partner_id,
            split_percentage=split_percentage,
            default_category_key=default_category_key,
            date_format=date_format,
            filters=ImportFilters(exclude_credits=exclude_credits),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    # StatementImportError is turned into a 422 by the app-level handler
    return await import_service.preview_import(db, content, file.filename, config, cache, pending)


@router.post("/{import_id}/confirm", response_model=ImportStatusResponse)
def confirm_import(
    import_id: str,
    request: ImportConfirmRequest,
    db: Session = Depends(get_db),
    cache: ImportResultCache = Depends(get_import_cache),
    pending: PendingImportStore = Depends(get_pending_imports)
):
    """Import the selected preview rows as expenses"""
    try:
        return import_service.confirm_import(db, import_id, request, pending, cache)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/history", response_model=list[ImportLogResponse])
def get_import_history(
    couple_id: Optional[str] = None,
    limit: int = 20,
    db: Session = Depends(get_db),
    pending: PendingImportStore = Depends(get_pending_imports)
):
    """Get import history"""
    logs = import_service.get_import_history(db, couple_id, limit, pending)
    return [ImportLogResponse.model_validate(log) for log in logs]


@router.get("/{import_id}/status", response_model=ImportStatusResponse)
def get_import_status(
    import_id: str,
    db: Session = Depends(get_db)
):
    """Get status of an import"""
    try:
        return import_service.get_import_status(db, import_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

