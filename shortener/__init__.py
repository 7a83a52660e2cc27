"""Rate-limited URL shortener service."""

from shortener.app import create_app
from shortener.config import Config
from shortener.rate_limiter import Decision, ExpirySweeper, RateLimiter

__all__ = ["create_app", "Config", "Decision", "ExpirySweeper", "RateLimiter"]
