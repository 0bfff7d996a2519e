"""
FastAPI dependency injection.
Database, session manager and the single sync orchestrator.
"""

from typing import Optional
from fastapi import Request, HTTPException

from .config import settings
from .db import SQLiteDatabase
from .auth import SessionManager
from .processor import SyncOrchestrator


# Global instances (initialized on startup)
_db: Optional[SQLiteDatabase] = None
_session_manager: Optional[SessionManager] = None
_orchestrator: Optional[SyncOrchestrator] = None


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _db, _session_manager, _orchestrator

    _db = SQLiteDatabase(settings.database_path)
    await _db.initialize()

    _session_manager = SessionManager(settings.session_secret)
    _orchestrator = SyncOrchestrator.from_settings(_db, settings)


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    global _db, _orchestrator
    if _orchestrator:
        await _orchestrator.close()
        _orchestrator = None
    if _db:
        await _db.close()
        _db = None


def get_db() -> SQLiteDatabase:
    """Get the database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not initialized")
    return _session_manager


def get_orchestrator() -> SyncOrchestrator:
    """Get the sync orchestrator instance."""
    if _orchestrator is None:
        raise RuntimeError("Sync orchestrator not initialized")
    return _orchestrator


async def require_auth(request: Request):
    """Dependency that requires a valid session cookie."""
    if not get_session_manager().is_authenticated(request):
        raise HTTPException(status_code=401, detail="Not authenticated")
