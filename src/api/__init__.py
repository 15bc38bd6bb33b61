"""HTTP API routes."""
from fastapi import APIRouter

from .routes_tools import router as tools_router

router = APIRouter()
router.include_router(tools_router)

__all__ = ["router"]
