"""Storage for short URL records."""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict

from shortener.errors import ShortCodeTakenError, URLNotFoundError
from shortener.models import ShortURL


class Repository(ABC):
    """Opaque store of :class:`ShortURL` records keyed by short code."""

    @abstractmethod
    def save(self, url: ShortURL) -> None:
        """Store a new record. Raises ShortCodeTakenError on duplicates."""

    @abstractmethod
    def find(self, short_code: str) -> ShortURL:
        """Return the record for a code. Raises URLNotFoundError."""

    @abstractmethod
    def increment_clicks(self, short_code: str) -> None:
        """Bump the click counter. Raises URLNotFoundError."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""


class MemoryRepository(Repository):
    """In-process repository. Records are lost on restart."""

    def __init__(self):
        self.urls: Dict[str, ShortURL] = {}
        self.lock = threading.Lock()

    def save(self, url: ShortURL) -> None:
        with self.lock:
            if url.short_code in self.urls:
                raise ShortCodeTakenError(f"short code {url.short_code!r} already exists")
            self.urls[url.short_code] = replace(url)

    def find(self, short_code: str) -> ShortURL:
        with self.lock:
            url = self.urls.get(short_code)
            if url is None:
                raise URLNotFoundError("URL not found")
            return replace(url)

    def increment_clicks(self, short_code: str) -> None:
        with self.lock:
            url = self.urls.get(short_code)
            if url is None:
                raise URLNotFoundError("URL not found")
            url.click_count += 1

    def count(self) -> int:
        with self.lock:
            return len(self.urls)
