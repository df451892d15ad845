"""
API route handlers for the listing governance API.
"""

from .auth import router as auth_router
from .listings import router as listings_router
from .requests import registration_router, linking_router
from .admin import router as admin_router
from .quota import router as quota_router
from .notifications import router as notifications_router

__all__ = [
    "auth_router",
    "listings_router",
    "registration_router",
    "linking_router",
    "admin_router",
    "quota_router",
    "notifications_router",
]
