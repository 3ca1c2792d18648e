# backend/dicey/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

# rate limiting
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from dicey.core.logger import room_logger
from dicey.core.settings import get_settings
from dicey.db import Database
from dicey.errors import DecisionError
from dicey.security.rate_limit import limiter

ALLOWED_ORIGINS = get_settings().allowed_origins

# ---- Default security headers ----
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "frame-ancestors 'none'; "
        "object-src 'none'; "
        "base-uri 'self'; "
        "form-action 'self'"
    ),
}
# NOTE: HSTS only takes effect when served over HTTPS (enable at your reverse proxy in prod)
STRICT_TRANSPORT_SECURITY = "max-age=31536000; includeSubDomains"


# ---- Store lifecycle: open at startup, close at shutdown ----
@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database(get_settings().database_url).open()
    database.create_all()
    app.state.database = database
    try:
        yield
    finally:
        database.close()


app = FastAPI(title="Dicey Decisions", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-requested-with"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"success": False, "error": "too_many_requests", "message": "Try again later."},
    )
    for header, value in (getattr(exc, "headers", {}) or {}).items():
        response.headers.setdefault(header, value)
    return response


# ---- Every failure -> {"success": false, "error": code, "message": text} ----
HTTP_ERROR_CODES = {
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    415: "unsupported_media_type",
}


def _failure(status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": code, "message": message},
        headers=headers,
    )


@app.exception_handler(DecisionError)
def _decision_error_handler(request: Request, exc: DecisionError) -> JSONResponse:
    room_logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return _failure(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        # drop the leading "body"/"query"/"path" segment
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return _failure(422, "invalid_input", "; ".join(problems) or "Invalid input")


@app.exception_handler(StarletteHTTPException)
def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _failure(exc.status_code, code, message, getattr(exc, "headers", None))


# ---- Security headers middleware ----
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    # HSTS (effective only when behind HTTPS)
    response.headers.setdefault("Strict-Transport-Security", STRICT_TRANSPORT_SECURITY)
    return response


# ---- HTTP hardening middleware ----
@app.middleware("http")
async def check_http_hardening(request: Request, call_next):
    # Only GET/POST/OPTIONS are part of the API surface
    if request.method in ["PUT", "PATCH", "DELETE"]:
        return _failure(405, "method_not_allowed", "Method Not Allowed", {"Allow": "GET, POST, OPTIONS"})

    # POST bodies must be JSON; empty-bodied POSTs (logout, start-voting) pass
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        has_body = request.headers.get("content-length", "0") not in ("", "0") or "transfer-encoding" in request.headers
        if has_body and not content_type.lower().startswith("application/json"):
            return _failure(415, "unsupported_media_type", "Unsupported Media Type. Must be application/json")

    response: Response = await call_next(request)
    return response


# ---- Health endpoint (used by tests and curl) ----
@app.get("/health")
def health():
    return {"ok": True}


from dicey.routers import auth, options, rooms, voting  # noqa: E402

app.include_router(auth.router)
app.include_router(rooms.router)
app.include_router(options.router)
app.include_router(voting.router)
