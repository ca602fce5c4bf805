"""slowapi limiter keyed on the logged-in user, else the client address."""

from fastapi import Request
from slowapi import Limiter

from .config import settings


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_key(request: Request) -> str:
    session = request.scope.get("session") or {}
    user_id = session.get("user_id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{client_address(request)}"


limiter = Limiter(key_func=rate_limit_key, enabled=settings.rate_limit_enabled)
