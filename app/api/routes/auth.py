# app/api/routes/auth.py

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from infrastructure.socketio_manager import AUTH_COOKIE_NAME, verify_token


bearer_scheme = HTTPBearer(auto_error=False)


async def current_participant(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """
    Resolve the caller's participant id from `Authorization: Bearer <token>`
    (or the auth cookie shared with the Socket.IO transport).

    Raises:
        AuthenticationError: If no valid token is presented
    """
    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE_NAME)
    return verify_token(token)
