from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import httpx

EXPECTED_STATUS_CODES = frozenset({403, 404, 410})
_CORS_MARKERS = ("cors", "access-control-allow-origin")


class ErrorKind(str, Enum):
    EXPECTED = "expected"
    UNEXPECTED = "unexpected"


class ProviderResponseError(Exception):
    """Raised by adapters when a vendor payload cannot be understood."""


@dataclass(frozen=True)
class FetchError:
    kind: ErrorKind
    message: str
    status_code: int | None = None

    @property
    def expected(self) -> bool:
        return self.kind is ErrorKind.EXPECTED

    @classmethod
    def from_exception(cls, exc: BaseException) -> FetchError:
        status_code = None
        if isinstance(exc, httpx.HTTPStatusError):
            status_code = exc.response.status_code
        return cls(kind=classify_error(exc), message=describe_error(exc), status_code=status_code)


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code in EXPECTED_STATUS_CODES:
            return ErrorKind.EXPECTED
        return ErrorKind.UNEXPECTED
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.EXPECTED
    if isinstance(exc, httpx.ConnectError):
        return ErrorKind.EXPECTED
    message = str(exc).casefold()
    if any(marker in message for marker in _CORS_MARKERS):
        return ErrorKind.EXPECTED
    return ErrorKind.UNEXPECTED


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code} from {exc.request.url}"
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return f"timeout: {exc}" if str(exc) else "timeout"
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
