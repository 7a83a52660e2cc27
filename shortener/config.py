"""Environment-driven configuration for the URL shortener.

Every knob is read once at startup. Malformed values never block startup:
they are logged and replaced with the default.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_REQUESTS = 100
DEFAULT_RATE_LIMIT_WINDOW = 60 * 60.0
DEFAULT_PORT = 8000
DEFAULT_URL_EXPIRY = 365 * 24 * 60 * 60.0
DEFAULT_ALLOWED_ORIGINS = ("https://your-frontend.vercel.app", "http://localhost:3000")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"1h"``, ``"1h30m"`` or ``"250ms"``.

    Args:
        text: Sequence of decimal numbers each followed by a unit
            (ns, us, ms, s, m, h), optionally signed. ``"0"`` is accepted.

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If the text is not a valid duration.
    """
    s = text.strip()
    if not s:
        raise ValueError("empty duration")

    sign = 1.0
    if s[0] in "+-":
        if s[0] == "-":
            sign = -1.0
        s = s[1:]

    if s == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(s):
        match = _DURATION_PART.match(s, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"invalid duration {text!r}")
    return sign * total


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using %d", name, raw, default)
        return default
    return value


def _positive_duration(
    environ: Mapping[str, str], name: str, default: Optional[float]
) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = parse_duration(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a duration, using default", name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using default", name, raw)
        return default
    return value


@dataclass(frozen=True)
class Config:
    """Process-wide settings. Durations are in seconds."""

    rate_limit_requests: int = DEFAULT_RATE_LIMIT_REQUESTS
    rate_limit_window: float = DEFAULT_RATE_LIMIT_WINDOW
    # None means "same as the window"
    cleanup_interval: Optional[float] = None
    port: int = DEFAULT_PORT
    base_url: str = f"http://localhost:{DEFAULT_PORT}"
    url_expiry: float = DEFAULT_URL_EXPIRY
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a Config from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            A Config with defaults substituted for missing or malformed values.
        """
        env = os.environ if environ is None else environ

        port = _positive_int(env, "PORT", DEFAULT_PORT)
        base_url = env.get("BASE_URL") or f"http://localhost:{port}"

        origins_raw = env.get("CORS_ALLOWED_ORIGINS")
        if origins_raw:
            origins = tuple(o.strip() for o in origins_raw.split(",") if o.strip())
        else:
            origins = DEFAULT_ALLOWED_ORIGINS

        return cls(
            rate_limit_requests=_positive_int(
                env, "RATE_LIMIT_REQUESTS", DEFAULT_RATE_LIMIT_REQUESTS
            ),
            rate_limit_window=_positive_duration(
                env, "RATE_LIMIT_WINDOW", DEFAULT_RATE_LIMIT_WINDOW
            ),
            cleanup_interval=_positive_duration(env, "RATE_LIMIT_CLEANUP_INTERVAL", None),
            port=port,
            base_url=base_url.rstrip("/"),
            url_expiry=_positive_duration(env, "URL_EXPIRY", DEFAULT_URL_EXPIRY),
            allowed_origins=origins,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
