"""
Error taxonomy for the ingestion pipeline.

Every failure that crosses a source pipeline boundary is a ScrapingError with
one of four kinds:

  NETWORK     fetch / timeout / connection failures   (retryable)
  PARSING     markup or feed shape mismatch, drift    (not retryable)
  DATABASE    event store / log store failures        (retryable)
  VALIDATION  malformed candidate data                (not retryable)
"""
from __future__ import annotations

import traceback
from enum import Enum
from typing import Any, Optional

import requests
from postgrest.exceptions import APIError


class ErrorKind(str, Enum):
    NETWORK = "network"
    PARSING = "parsing"
    DATABASE = "database"
    VALIDATION = "validation"


class ScrapingError(Exception):
    kind: ErrorKind = ErrorKind.NETWORK
    retryable: bool = True

    def __init__(
        self,
        message: str,
        site_name: str = "",
        *,
        kind: Optional[ErrorKind] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.site_name = site_name
        if kind is not None:
            self.kind = kind
        if retryable is not None:
            self.retryable = retryable

    def stack_trace(self) -> Optional[str]:
        if self.__traceback__ is None:
            return None
        return "".join(traceback.format_exception(type(self), self, self.__traceback__))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "siteName": self.site_name,
            "errorType": self.kind.value,
            "retryable": self.retryable,
        }


class NetworkError(ScrapingError):
    kind = ErrorKind.NETWORK
    retryable = True


class HttpStatusError(NetworkError):
    """Non-2xx response. Only 5xx and 429 are worth another attempt."""

    def __init__(self, status_code: int, url: str, site_name: str = "") -> None:
        super().__init__(
            f"HTTP error! status: {status_code} url={url}",
            site_name,
            retryable=status_code >= 500 or status_code == 429,
        )
        self.status_code = status_code
        self.url = url


class ParsingError(ScrapingError):
    kind = ErrorKind.PARSING
    retryable = False


class StructureChangeError(ParsingError):
    """The source answered, but its yield no longer matches its history."""

    def __init__(self, message: str, site_name: str = "", *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, site_name)
        self.details = details or {}


class DatabaseError(ScrapingError):
    kind = ErrorKind.DATABASE
    retryable = True


class ValidationError(ScrapingError):
    kind = ErrorKind.VALIDATION
    retryable = False


_NETWORK_HINTS = ("timeout", "timed out", "fetch", "network", "connection", "econnrefused", "enotfound")
_PARSING_HINTS = ("parse", "selector", "html", "xml")
_DATABASE_HINTS = ("database", "supabase", "insert", "postgrest")


def to_scraping_error(exc: BaseException, site_name: str) -> ScrapingError:
    """
    Classify an arbitrary exception. Inconclusive cases default to NETWORK
    (optimistic retry) rather than being dropped.
    """
    if isinstance(exc, ScrapingError):
        if not exc.site_name:
            exc.site_name = site_name
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, (requests.Timeout, requests.ConnectionError, TimeoutError, ConnectionError)):
        err: ScrapingError = NetworkError(message, site_name)
    elif isinstance(exc, APIError):
        err = DatabaseError(message, site_name)
    else:
        low = message.lower()
        if any(h in low for h in _NETWORK_HINTS):
            err = NetworkError(message, site_name)
        elif any(h in low for h in _PARSING_HINTS):
            err = ParsingError(message, site_name)
        elif any(h in low for h in _DATABASE_HINTS):
            err = DatabaseError(message, site_name)
        else:
            err = NetworkError(message, site_name)

    err.__cause__ = exc
    err.__traceback__ = exc.__traceback__
    return err
