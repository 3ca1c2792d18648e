from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import Response
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from dicey.core.settings import get_settings
from dicey.db import get_db, transaction
from dicey.db_models import User

SESSION_COOKIE = "session"


def create_session_token(user_id: int) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(seconds=settings.session_max_age_seconds),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _parse_token(token: str) -> Optional[int]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    try:
        user_id = int(payload.get("sub", 0))
    except (TypeError, ValueError):
        return None
    return user_id or None


def set_session_cookie(response: Response, user_id: int) -> None:
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE,
        value=create_session_token(user_id),
        max_age=settings.session_max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE, path="/")


def _request_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization", "")
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return request.cookies.get(SESSION_COOKIE)


def get_current_user_id(request: Request, db: Session = Depends(get_db)) -> int:
    """Resolve the caller's user id from the session cookie or a bearer token.

    A valid token whose account no longer exists is treated as signed out.
    """
    token = _request_token(request)
    user_id = _parse_token(token) if token else None
    if user_id is not None:
        with transaction(db):
            if db.get(User, user_id) is None:
                user_id = None
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in to continue")
    return user_id


__all__ = [
    "SESSION_COOKIE",
    "clear_session_cookie",
    "create_session_token",
    "get_current_user_id",
    "set_session_cookie",
]
