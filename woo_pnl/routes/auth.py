"""
Authentication routes - login/logout.
"""

import asyncio
import time
from collections import defaultdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import settings
from ..dependencies import get_session_manager
from ..auth import verify_password

router = APIRouter(prefix="/api/auth")

# Brute force protection: failed login attempts by IP
failed_attempts = defaultdict(list)
LOCKOUT_THRESHOLD = 5  # Lock after 5 failed attempts
LOCKOUT_DURATION = 300  # seconds


class LoginRequest(BaseModel):
    password: str


@router.post("/login")
async def login(request: Request, body: LoginRequest):
    """Verify the admin password and start a session."""
    session_manager = get_session_manager()
    client_ip = request.client.host if request.client else "unknown"
    current_time = time.time()

    failed_attempts[client_ip] = [
        attempt_time for attempt_time in failed_attempts[client_ip]
        if current_time - attempt_time < LOCKOUT_DURATION
    ]

    if len(failed_attempts[client_ip]) >= LOCKOUT_THRESHOLD:
        remaining = int(LOCKOUT_DURATION - (current_time - failed_attempts[client_ip][0]))
        return JSONResponse(
            {"detail": f"Too many failed attempts. Try again in {remaining} seconds."},
            status_code=429,
        )

    if settings.admin_password_hash and verify_password(body.password, settings.admin_password_hash):
        failed_attempts[client_ip] = []
        response = JSONResponse({"success": True})
        session_manager.create_session(response)
        return response

    failed_attempts[client_ip].append(current_time)

    # Slow down repeated guesses
    await asyncio.sleep(min(len(failed_attempts[client_ip]) * 0.5, 3))

    return JSONResponse({"detail": "Invalid password"}, status_code=401)


@router.post("/logout")
async def logout():
    """End the current session."""
    response = JSONResponse({"success": True})
    get_session_manager().clear_session(response)
    return response
