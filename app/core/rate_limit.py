"""
Shared slowapi limiter.

Lives outside app.main so feature routers can decorate endpoints with it.
"""
from slowapi import Limiter
from starlette.requests import Request


def get_authorization_header(request: Request) -> str:
    """
    Extract authorization header for rate limiting.
    Each bearer token gets its own bucket; unauthenticated calls share one.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"


limiter = Limiter(key_func=get_authorization_header)
