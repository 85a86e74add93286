"""Market data provider error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class ConfigurationError(Exception):
    """Raised at construction time when required provider settings are missing."""
    pass


class ProviderError(Exception):
    """Base class for provider-side and transport failures."""
    pass


@dataclass
class RateLimitError(ProviderError):
    """Raised when the provider answers 429."""
    message: str = "rate limited"
    retry_after_seconds: Optional[float] = None

    def __str__(self) -> str:
        if self.retry_after_seconds is not None:
            return f"{self.message} (retry after {self.retry_after_seconds}s)"
        return self.message


class ProviderResponseError(ProviderError):
    """Non-2xx status or a body that is not the expected JSON shape."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
