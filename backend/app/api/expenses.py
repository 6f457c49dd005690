from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.schemas.expense import ExpenseListResponse, ExpenseResponse
from app.services import import_service

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    couple_id: str,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    items, total = import_service.list_expenses(db, couple_id, limit, offset)
    return ExpenseListResponse(
        items=[ExpenseResponse.model_validate(e) for e in items],
        total=total
    )
