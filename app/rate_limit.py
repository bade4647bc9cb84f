"""Shared slowapi limiter, keyed by client cookie when present."""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from app.constants import COOKIE_NAME, DEFAULT_RATE_LIMIT


def client_key(request: Request) -> str:
    """Rate-limit key: the anonymous client id, else the remote address."""
    return request.cookies.get(COOKIE_NAME) or get_remote_address(request)


limiter = Limiter(key_func=client_key, default_limits=[DEFAULT_RATE_LIMIT])
