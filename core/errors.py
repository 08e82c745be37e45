"""
Exception hierarchy for the ingestion platform.
"""

from typing import Iterable, Optional


class ScraperPlatformError(Exception):
    """Base class for all platform errors."""


class FetchError(ScraperPlatformError):
    """A source responded, but not with something usable (4xx, bad payload)."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"{url}: {message}")


class SourceUnreachableError(FetchError):
    """Connection refused, DNS failure or timeout. Retried by the job queue."""


class UnknownSourceError(ScraperPlatformError, KeyError):
    """Requested source name is not registered."""

    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = sorted(available)
        super().__init__(name)

    def __str__(self) -> str:
        return f"Source '{self.name}' not found. Available: {self.available}"


class StorageError(ScraperPlatformError):
    """Persistence sink failed."""


class DuplicateFingerprintError(StorageError):
    """Insert hit the unique fingerprint constraint."""

    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"Event with fingerprint {fingerprint[:12]}... already exists")
