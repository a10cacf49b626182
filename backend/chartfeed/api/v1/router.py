"""Aggregate API v1 router."""

from fastapi import APIRouter

from chartfeed.api.v1.market import router as market_router
from chartfeed.api.v1.system import router as system_router

api_router = APIRouter()

api_router.include_router(system_router, prefix="/system", tags=["system"])
api_router.include_router(market_router, prefix="/market", tags=["market"])
