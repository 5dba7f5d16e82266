"""
API Routes Configuration
"""

from fastapi import APIRouter

from listings.api.endpoints import communities, health, properties, revalidate, search

# Create main router
router = APIRouter()

# Include endpoint routers
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(search.router, tags=["search"])
router.include_router(properties.router, prefix="/properties", tags=["properties"])
router.include_router(communities.router, prefix="/communities", tags=["communities"])
router.include_router(revalidate.router, prefix="/revalidate", tags=["revalidate"])
