"""Application error taxonomy.

Every failure the API reports on purpose is an ``AppError`` subclass. The
kind decides the HTTP status; anything else surfaces as a plain 500.
"""

from enum import Enum


class ErrorKind(str, Enum):
    invalid_argument = "invalid_argument"
    not_found = "not_found"
    conflict = "conflict"
    upstream_failure = "upstream_failure"


STATUS_CODES = {
    ErrorKind.invalid_argument: 400,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
    ErrorKind.upstream_failure: 502,
}


class AppError(Exception):
    kind: ErrorKind = ErrorKind.invalid_argument

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind.value}


class InvalidArgument(AppError):
    kind = ErrorKind.invalid_argument


class NotFound(AppError):
    kind = ErrorKind.not_found


class Conflict(AppError):
    kind = ErrorKind.conflict


class UpstreamFailure(AppError):
    kind = ErrorKind.upstream_failure
