import logging
import time
import uuid
from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from carmarket.config import settings

logger = logging.getLogger(__name__)

_serializer = URLSafeTimedSerializer(settings.AUTH_SECRET_KEY)

# Session ids signed out before their token expired, with the sign-out time
_revoked_sessions: dict[str, float] = {}


def create_token(email: str) -> str:
    return _serializer.dumps({"email": email, "sid": uuid.uuid4().hex}, salt="auth")


def _load_session(token: str) -> dict | None:
    try:
        data = _serializer.loads(token, salt="auth", max_age=settings.AUTH_TOKEN_MAX_AGE)
    except (SignatureExpired, BadSignature):
        return None
    if not isinstance(data, dict) or data.get("sid") in _revoked_sessions:
        return None
    return data


def verify_token(token: str) -> str | None:
    data = _load_session(token)
    return data.get("email") if data else None


def _prune_revoked(now: float):
    # Tokens past AUTH_TOKEN_MAX_AGE already fail max_age
    cutoff = now - settings.AUTH_TOKEN_MAX_AGE
    for sid in [sid for sid, at in _revoked_sessions.items() if at < cutoff]:
        del _revoked_sessions[sid]


def sign_in(email: str, password: str) -> str | None:
    if email.strip().lower() == settings.AUTH_EMAIL.lower() and password == settings.AUTH_PASSWORD:
        logger.info(f"Signed in: {email}")
        return create_token(settings.AUTH_EMAIL)
    logger.warning(f"Failed sign-in attempt for {email}")
    return None


def sign_out(token: str):
    data = _load_session(token)
    now = time.time()
    _prune_revoked(now)
    if data and data.get("sid"):
        _revoked_sessions[data["sid"]] = now


def _request_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def get_current_session(request: Request) -> str | None:
    """Signed-in email for this request, or None."""
    token = _request_token(request)
    return verify_token(token) if token else None


# --- Router ---

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login")
async def login(req: LoginRequest):
    token = sign_in(req.email, req.password)
    if token:
        return {"token": token, "email": settings.AUTH_EMAIL}
    return JSONResponse(status_code=401, content={"detail": "Invalid email or password"})


@router.post("/logout")
async def logout(request: Request):
    token = _request_token(request)
    if token:
        sign_out(token)
    return {"signed_out": True}


@router.post("/check")
async def check_token(request: Request):
    email = get_current_session(request)
    if email:
        return {"valid": True, "email": email}
    return JSONResponse(status_code=401, content={"valid": False})


# --- Middleware ---

PROTECTED_PREFIXES = ("/api/v1/admin", "/api/v1/users")
# (method, path) pairs that need a session on otherwise public routes
PROTECTED_ROUTES = {("POST", "/api/v1/listings")}


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path.rstrip("/") or "/"

        protected = (
            any(path.startswith(p) for p in PROTECTED_PREFIXES)
            or (request.method, path) in PROTECTED_ROUTES
        )
        if not protected or get_current_session(request):
            return await call_next(request)

        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})
