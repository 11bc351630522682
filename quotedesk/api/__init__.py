"""API router package for the quoting service."""
from fastapi import APIRouter

from .routes import catalog, experiences, pricing, quotes, services, tours, users

router = APIRouter()
router.include_router(catalog.router)
router.include_router(services.router)
router.include_router(tours.router)
router.include_router(experiences.router)
router.include_router(pricing.router)
router.include_router(quotes.router)
router.include_router(users.router)

__all__ = ["router"]
