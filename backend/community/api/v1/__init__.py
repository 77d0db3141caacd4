"""
API Version 1 Router.

Combines all API endpoints under /api/v1 prefix.
"""

from fastapi import APIRouter

from community.api.v1.endpoints import admin, auth, community, moderation, search, topics, users

router = APIRouter()

# Include endpoint routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(community.router, prefix="/community", tags=["Community"])
router.include_router(topics.router, tags=["Forum"])
router.include_router(search.router, prefix="/search", tags=["Search"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(moderation.router, prefix="/mod", tags=["Moderation"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
