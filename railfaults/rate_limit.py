"""SlowAPI rate limiting keyed by the authenticated username where there is one."""
import base64
import binascii

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import get_settings
from .errors import RateLimitedError, render_error

settings = get_settings()


def client_key(request: Request) -> str:
    """Bucket by Basic-auth username, falling back to the client address."""
    scheme, _, encoded = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "basic" and encoded:
        try:
            username = base64.b64decode(encoded).decode("utf-8").partition(":")[0]
        except (binascii.Error, UnicodeDecodeError):
            username = ""
        if username:
            return f"user:{username}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limiting_enabled,
)


def rate_limit_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
    return render_error(RateLimitedError(f"Rate limit exceeded: {exc.detail}"))


def apply_rate_limiter(app: FastAPI) -> None:
    """Attach the limiter middleware and exception handler to an app."""

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
