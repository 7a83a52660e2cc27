"""Per-client rate limiting as Flask request hooks."""

import ipaddress
import logging
import math
from typing import Optional

from flask import Flask, Response, g, request

from shortener.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _host_of(remote_addr: str) -> Optional[str]:
    """Return the IP portion of ``ip``, ``ip:port`` or ``[ipv6]:port``."""
    candidate = remote_addr
    if remote_addr.startswith("["):
        end = remote_addr.find("]")
        if end == -1:
            return None
        candidate = remote_addr[1:end]
    elif remote_addr.count(":") == 1:
        candidate = remote_addr.split(":", 1)[0]

    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def client_key(environ) -> str:
    """Derive the identity a request is rate limited under.

    The first ``X-Forwarded-For`` entry wins when present. It is trusted
    as-is, so anyone can pick their own key unless a trusted reverse proxy
    overwrites the header.
    """
    forwarded = environ.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    remote_addr = environ.get("REMOTE_ADDR") or ""
    host = _host_of(remote_addr) if remote_addr else None
    if host:
        return host
    return remote_addr


def _is_preflight() -> bool:
    return (
        request.method == "OPTIONS"
        and "Access-Control-Request-Method" in request.headers
    )


class RateLimitMiddleware:
    """Admit or reject each request to a Flask app against a :class:`RateLimiter`.

    Every response gets ``X-RateLimit-Limit`` and ``X-RateLimit-Remaining``.
    Rejected requests get ``Retry-After`` and a 429 before any view runs.
    CORS preflights pass through uncounted.

    Args:
        limiter: Shared limiter state.
        app: Optional Flask app to attach to right away.
    """

    def __init__(self, limiter: RateLimiter, app: Optional[Flask] = None):
        self.limiter = limiter
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self._check)
        app.after_request(self._annotate)

    def _check(self):
        if _is_preflight():
            return None

        key = client_key(request.environ)
        decision = self.limiter.allow(key)
        g.rate_limit_decision = decision

        if decision.allowed:
            return None

        logger.debug("Rate limited %s (retry in %.2fs)", key, decision.retry_after)
        response = Response("rate limit exceeded\n", status=429, mimetype="text/plain")
        response.headers["Retry-After"] = str(_retry_after_seconds(decision.retry_after))
        return response

    def _annotate(self, response):
        decision = g.get("rate_limit_decision")
        if decision is not None:
            response.headers["X-RateLimit-Limit"] = str(self.limiter.capacity)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


def _retry_after_seconds(retry_after: float) -> int:
    # Rounded up so a client honouring the header never arrives early.
    return max(1, math.ceil(retry_after))
