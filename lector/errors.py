"""Exception types raised across the extraction pipeline."""

from __future__ import annotations


class LectorError(Exception):
    """Base class for all Lector errors."""


class ContainerParseError(LectorError):
    """A ZIP container or XML part could not be parsed."""


class DocumentOpenError(LectorError):
    """The document bytes could not be read or decomposed into units."""


class UnsupportedDocumentType(LectorError):
    """No extraction path exists for the declared MIME type."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"Unsupported document type: {mime_type}")


class RemoteProviderError(LectorError):
    """The remote OCR provider failed."""

    def __init__(self, message: str, http_status: int | None = None):
        self.http_status = http_status
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        if self.http_status is None:
            return self.message
        return f"HTTP {self.http_status}: {self.message}"


class RateLimitError(RemoteProviderError):
    """The remote provider answered HTTP 429."""

    def __init__(self, message: str, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message, http_status=429)


class LocalProviderError(LectorError):
    """The on-device recognizer failed or is unavailable."""


class UnitTimeoutError(LectorError):
    """A unit did not finish within its processing timeout."""

    def __init__(self, unit_index: int, timeout: float):
        self.unit_index = unit_index
        self.timeout = timeout
        super().__init__(f"Unit {unit_index} timed out after {timeout:g}s")
