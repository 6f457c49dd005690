"""
Main API router.
"""

from fastapi import APIRouter
from app.api import expenses, imports, uploads

api_router = APIRouter()

api_router.include_router(imports.router)
api_router.include_router(expenses.router)
api_router.include_router(uploads.router)
