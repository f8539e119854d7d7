"""Two-state result returned by repositories and the social coordinator.

Operations never raise past their boundary. A caller gets either
``Success(data)`` or ``Error(message, kind)``; the message is meant to be shown
to the user as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    REMOTE_UNAVAILABLE = "remote_unavailable"
    NOT_FOUND = "not_found"
    LOCAL_CACHE_MISS = "local_cache_miss"
    INVALID = "invalid"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class Success:
    data: Any = None

    is_success = True

    @property
    def message(self) -> None:
        return None


@dataclass(frozen=True)
class Error:
    message: str
    kind: ErrorKind = ErrorKind.REMOTE_UNAVAILABLE

    is_success = False

    @property
    def data(self) -> None:
        return None


Result = Union[Success, Error]


def not_found(message: str) -> Error:
    return Error(message, ErrorKind.NOT_FOUND)


def invalid(message: str) -> Error:
    return Error(message, ErrorKind.INVALID)


def unauthorized(message: str) -> Error:
    return Error(message, ErrorKind.UNAUTHORIZED)
