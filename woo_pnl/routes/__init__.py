"""
Routes package.
"""

from .auth import router as auth_router
from .sync import router as sync_router
from .reports import router as reports_router
from .settings import router as settings_router

__all__ = [
    "auth_router",
    "sync_router",
    "reports_router",
    "settings_router",
]
