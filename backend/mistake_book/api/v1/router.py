"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from mistake_book.api.v1.endpoints import health, mistakes

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(mistakes.router, prefix="", tags=["Mistakes"])
