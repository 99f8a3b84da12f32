"""Exception types raised by adapters, stores and the CLI."""

from __future__ import annotations

from typing import Any


class LureCatalogError(Exception):
    """Base class for all catalog errors."""


class FetchError(LureCatalogError):
    """
    A page could not be fetched (network failure, timeout or non-2xx status).

    Usually transient: the entry stays in ``error`` and can be retried after a reset.
    """

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ParseError(LureCatalogError):
    """
    A required field could not be located on a page.

    Signals that the source's markup changed and the adapter needs maintenance.
    """

    def __init__(self, url: str, field: str, message: str | None = None) -> None:
        self.url = url
        self.field = field
        super().__init__(message or f"Could not locate {field} at {url}")


class ValidationError(LureCatalogError):
    """A normalized value fell outside its plausible range."""

    def __init__(self, field: str, value: Any, message: str | None = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message or f"Implausible value for {field}: {value!r}")


class ConfigError(LureCatalogError):
    """Missing credentials or an unusable configuration."""
