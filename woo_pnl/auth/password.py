"""
Admin password hashing.
"""

from passlib.hash import bcrypt


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a bcrypt hash; malformed hashes never match."""
    if not hashed:
        return False
    try:
        return bcrypt.verify(password, hashed)
    except ValueError:
        return False
