"""Error taxonomy returned by the persistence and service layers."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds callers can branch on."""

    validation = "validation"
    not_found = "not_found"
    persistence = "persistence"


class ServiceError(Exception):
    kind: ErrorKind = ErrorKind.persistence

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, detail={self.detail!r})"


class ValidationError(ServiceError):
    """Missing required field or out-of-domain input. Never retried."""

    kind = ErrorKind.validation


class NotFoundError(ServiceError):
    """No row matched the requested key."""

    kind = ErrorKind.not_found


class PersistenceError(ServiceError):
    """Underlying store failure."""

    kind = ErrorKind.persistence
