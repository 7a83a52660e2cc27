"""URL record stored by the repository."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass
class ShortURL:
    short_code: str
    original_url: str
    created_at: datetime
    expires_at: datetime
    click_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "short_code": self.short_code,
            "long_url": self.original_url,
            "clicks": self.click_count,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }
