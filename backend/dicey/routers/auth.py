# backend/dicey/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from dicey.core.logger import auth_logger as logger
from dicey.db import get_db
from dicey.errors import InvalidCredentials
from dicey.models import Ack, LoginPayload, SessionResponse, SignupPayload, UserOut
from dicey.security import clear_session_cookie, get_current_user_id, set_session_cookie
from dicey.security.rate_limit import LOGIN_LIMIT, SIGNUP_LIMIT, limiter
from dicey.services import identity

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_ip(request: Request) -> str:
    client = request.client
    return client.host if client and client.host else "0.0.0.0"


def _session_response(user_id: int, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content=SessionResponse(user_id=user_id).model_dump(),
    )
    set_session_cookie(response, user_id)
    return response


# ---------------- Signup ----------------
@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SIGNUP_LIMIT)
def signup(request: Request, payload: SignupPayload, db: Session = Depends(get_db)):
    user = identity.create_user(db, payload.name, str(payload.email), payload.password)
    logger.info(f"Signup for user {user.id} from IP {_client_ip(request)}")
    return _session_response(user.id, status.HTTP_201_CREATED)


# ---------------- Login ----------------
@router.post("/login", response_model=SessionResponse)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, payload: LoginPayload, db: Session = Depends(get_db)):
    ip = _client_ip(request)
    logger.info(f"Login attempt from IP {ip} Email:{payload.email} Password:[REDACTED]")

    user = identity.validate_credential(db, str(payload.email), payload.password)
    if user is None:
        logger.warning(f"Failed login from IP {ip} Email:{payload.email} Password:[REDACTED]")
        raise InvalidCredentials()

    logger.info(f"Successful login for user {user.id} from IP {ip}")
    return _session_response(user.id)


# ---------------- Logout ----------------
@router.post("/logout", response_model=Ack)
def logout() -> Response:
    response = JSONResponse(content=Ack().model_dump())
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=UserOut)
def me(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)) -> UserOut:
    user = identity.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in to continue")
    return UserOut.model_validate(user)
