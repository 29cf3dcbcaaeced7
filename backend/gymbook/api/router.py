"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from gymbook.api.routes import bookings, stats

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(stats.router)
