"""
Authentication module.
"""

from woo_pnl.auth.password import hash_password, verify_password
from woo_pnl.auth.session import SessionManager, SESSION_COOKIE_NAME

__all__ = [
    "hash_password",
    "verify_password",
    "SessionManager",
    "SESSION_COOKIE_NAME",
]
