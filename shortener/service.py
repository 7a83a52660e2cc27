"""URL shortening logic on top of a :class:`Repository`."""

import logging
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlparse

from shortener.errors import (
    InvalidShortCodeError,
    InvalidURLError,
    ShortCodeTakenError,
    URLExpiredError,
)
from shortener.models import ShortURL
from shortener.repository import Repository

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_letters + string.digits
CODE_LENGTH = 6
MAX_GENERATE_ATTEMPTS = 10
DEFAULT_EXPIRY = timedelta(days=365)

_CUSTOM_CODE = re.compile(r"^[A-Za-z0-9_-]{1,32}$")
# Paths the app serves itself; a custom code must not shadow them.
RESERVED_CODES = frozenset({"shorten", "health", "stats"})


def generate_short_code(length: int = CODE_LENGTH) -> str:
    """Generate a random alphanumeric short code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_url(url: str) -> str:
    """Return the trimmed URL, or raise InvalidURLError."""
    if url is not None and not isinstance(url, str):
        raise InvalidURLError("url must be a string")
    url = (url or "").strip()
    if not url:
        raise InvalidURLError("url cannot be empty")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURLError("url must be an absolute http(s) URL")
    return url


class URLService:
    """Create and resolve short URLs.

    Args:
        repository: Where records are stored.
        now: Returns the current aware datetime. Injectable for tests.
        default_expiry: Lifetime of URLs created without an explicit expiry.
    """

    def __init__(
        self,
        repository: Repository,
        now: Optional[Callable[[], datetime]] = None,
        default_expiry: timedelta = DEFAULT_EXPIRY,
    ):
        self.repository = repository
        self.now = now or _utcnow
        self.default_expiry = default_expiry

    def shorten(
        self,
        original_url: str,
        custom_code: Optional[str] = None,
        expiry: Optional[timedelta] = None,
    ) -> ShortURL:
        """Store a new short URL.

        Args:
            original_url: Absolute http(s) URL to redirect to.
            custom_code: Requested short code; generated when empty.
            expiry: How long the link stays valid.

        Returns:
            The stored record.

        Raises:
            InvalidURLError: The URL is not a string, empty or not http(s).
            InvalidShortCodeError: The custom code is not a string or has a
                bad format.
            ShortCodeTakenError: The custom code is already in use.
        """
        original_url = validate_url(original_url)
        created_at = self.now()
        expires_at = created_at + (expiry if expiry is not None else self.default_expiry)

        if custom_code is not None and not isinstance(custom_code, str):
            raise InvalidShortCodeError("custom code must be a string")

        if custom_code:
            if not _CUSTOM_CODE.match(custom_code) or custom_code in RESERVED_CODES:
                raise InvalidShortCodeError(
                    "custom code must be 1-32 letters, digits, '-' or '_'"
                )
            url = ShortURL(custom_code, original_url, created_at, expires_at)
            self.repository.save(url)
            logger.info("Shortened %s as custom code %s", original_url, custom_code)
            return url

        for _ in range(MAX_GENERATE_ATTEMPTS):
            url = ShortURL(generate_short_code(), original_url, created_at, expires_at)
            try:
                self.repository.save(url)
            except ShortCodeTakenError:
                continue
            logger.info("Shortened %s as %s", original_url, url.short_code)
            return url

        raise ShortCodeTakenError("could not allocate a free short code")

    def resolve(self, short_code: str) -> str:
        """Return the original URL for a code and count the click.

        Raises:
            URLNotFoundError: Unknown code.
            URLExpiredError: The link is past its expiry.
        """
        url = self.repository.find(short_code)
        if url.is_expired(self.now()):
            raise URLExpiredError("URL expired")
        self.repository.increment_clicks(short_code)
        return url.original_url

    def stats(self, short_code: str) -> ShortURL:
        return self.repository.find(short_code)

    def count(self) -> int:
        return self.repository.count()
