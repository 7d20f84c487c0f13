"""
API routes for the deal engine.
"""

from fastapi import APIRouter

from deal_engine.api import calculations

router = APIRouter()

router.include_router(calculations.router, prefix="/calculate", tags=["calculations"])
