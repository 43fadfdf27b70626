from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    INTERNAL_ERROR = "internal_error"


class SpotchError(Exception):
    """Base class for every error a service surfaces to its caller.

    Each subclass pins one ``ErrorKind`` and the HTTP status the API layer
    renders it with. ``reason`` is required and is passed through verbatim.
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.reason, "code": self.kind.value}


class NotFound(SpotchError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class PreconditionFailed(SpotchError):
    kind = ErrorKind.PRECONDITION_FAILED
    status_code = 412


class BadRequest(SpotchError):
    kind = ErrorKind.BAD_REQUEST
    status_code = 400


class Forbidden(SpotchError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class InternalError(SpotchError):
    kind = ErrorKind.INTERNAL_ERROR
    status_code = 500
