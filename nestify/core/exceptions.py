"""
Exception classes for the playlist tree service.

Every error raised by the services carries a machine-readable ``kind`` and
the HTTP status category it maps to, so the route layer and the API client
can translate errors in both directions without a lookup table.

Exception Hierarchy:
    NestifyError (base)
        NotFoundError - node or track missing, or owned by someone else
            StaleMoveError - moveTrack source does not match reality
        InvalidOperationError - mutation would break a tree invariant
            CycleError - reparent into self or a descendant
            ReorderMismatchError - reorder list differs from container contents
        ConflictError - container lock could not be acquired
        UpstreamUnavailableError - external catalog failed
"""

from typing import Any, Dict, Optional


class NestifyError(Exception):
    """
    Base exception for all service errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (ids involved).
    """

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Return the structured failure body sent over HTTP."""
        return {"detail": self.message, "kind": self.kind}


class NotFoundError(NestifyError):
    """
    Raised when a referenced node or track does not exist for the caller.

    Nodes owned by other users are reported the same way so their
    existence is never leaked.
    """

    kind = "not_found"
    status_code = 404


class InvalidOperationError(NestifyError):
    """Raised when a mutation would violate a tree invariant."""

    kind = "invalid_operation"
    status_code = 400


class CycleError(InvalidOperationError):
    """Raised when a playlist would be moved into itself or one of its descendants."""

    kind = "cycle"


class StaleMoveError(NotFoundError):
    """
    Raised when moveTrack names a source playlist the track is not in.

    The caller's view is out of date; it should refresh rather than retry.
    """

    kind = "stale_move"


class ReorderMismatchError(InvalidOperationError):
    """Raised when a reorder request does not list exactly the container's items."""

    kind = "reorder_mismatch"


class ConflictError(NestifyError):
    """Raised when a concurrent mutation holds the container for too long."""

    kind = "conflict"
    status_code = 409


class UpstreamUnavailableError(NestifyError):
    """Raised when the external catalog cannot be reached or rejects a request."""

    kind = "upstream_unavailable"
    status_code = 502


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        NestifyError,
        NotFoundError,
        InvalidOperationError,
        CycleError,
        StaleMoveError,
        ReorderMismatchError,
        ConflictError,
        UpstreamUnavailableError,
    )
}


def error_from_payload(status_code: int, payload: Any) -> NestifyError:
    """Rebuild a service error from an HTTP failure body."""
    if isinstance(payload, dict):
        message = str(payload.get("detail") or f"Request failed ({status_code})")
        error_cls = ERRORS_BY_KIND.get(payload.get("kind"))
    else:
        message = f"Request failed ({status_code})"
        error_cls = None

    if error_cls is None:
        if status_code == 404:
            error_cls = NotFoundError
        elif status_code == 409:
            error_cls = ConflictError
        elif 400 <= status_code < 500:
            error_cls = InvalidOperationError
        else:
            error_cls = NestifyError

    return error_cls(message, details={"status_code": status_code})
