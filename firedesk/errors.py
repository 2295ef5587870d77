"""Error taxonomy and normalization of Firestore failures.

The Python client raises typed ``google.api_core`` exceptions (``NotFound``,
``PermissionDenied``, ``DeadlineExceeded``) whose text reads ``"404 ..."`` or
``"403 ..."``. Those are classified by type or gRPC status first. Errors that
only carry text (strings relayed from elsewhere, wrapped failures) fall back to
an ordered pattern table over the status names (``"5 NOT_FOUND: ..."``).
Anything unmatched becomes ``ErrorKind.UNKNOWN`` with the raw message intact.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from google.api_core import exceptions as api_exceptions

NOT_CONNECTED_MESSAGE = "Not connected to Firestore. Connect to a project first."


class FiredeskError(RuntimeError):
    """Base class for errors raised inside the connection/query bridge."""


class CredentialReadError(FiredeskError):
    """Raised when a service-account file is missing, unreadable, or not valid JSON."""


class NotConnectedError(FiredeskError):
    """Raised when an operation needs a live connection and none is installed."""

    def __init__(self, message: str = NOT_CONNECTED_MESSAGE) -> None:
        super().__init__(message)


class QuerySourceError(FiredeskError):
    """Raised when user query source is rejected before it runs."""


class ErrorKind(str, Enum):
    """User-facing error categories."""

    CREDENTIAL_READ = "credential_read"
    DATABASE_NOT_FOUND = "database_not_found"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    NOT_CONNECTED = "not_connected"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class NormalizedError:
    """Categorized error plus the message shown to the user."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True, slots=True)
class ErrorPattern:
    """Row of the classification table; ``template`` receives ``{detail}``."""

    kind: ErrorKind
    pattern: re.Pattern[str]
    template: str

    def matches(self, message: str) -> bool:
        return self.pattern.search(message) is not None

    def render(self, detail: str) -> str:
        return self.template.format(detail=detail)


# First match wins.
ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        kind=ErrorKind.DATABASE_NOT_FOUND,
        pattern=re.compile(r"NOT_FOUND"),
        template="Firestore database not found: {detail}",
    ),
    ErrorPattern(
        kind=ErrorKind.PERMISSION_DENIED,
        pattern=re.compile(r"PERMISSION_DENIED"),
        template="Permission denied: {detail}",
    ),
)


# Typed client exceptions, checked before the text patterns.
ERROR_TYPES: tuple[tuple[type[BaseException], ErrorKind], ...] = (
    (api_exceptions.NotFound, ErrorKind.DATABASE_NOT_FOUND),
    (api_exceptions.PermissionDenied, ErrorKind.PERMISSION_DENIED),
    (api_exceptions.DeadlineExceeded, ErrorKind.TIMEOUT),
    (TimeoutError, ErrorKind.TIMEOUT),
)

_STATUS_KINDS = {
    "NOT_FOUND": ErrorKind.DATABASE_NOT_FOUND,
    "PERMISSION_DENIED": ErrorKind.PERMISSION_DENIED,
    "DEADLINE_EXCEEDED": ErrorKind.TIMEOUT,
}

TIMEOUT_MESSAGE = "Timed out waiting for Firestore"


def normalize_error(
    error: BaseException | str,
    *,
    patterns: Sequence[ErrorPattern] = ERROR_PATTERNS,
) -> NormalizedError:
    """Map an exception or raw message onto a :class:`NormalizedError`."""

    if isinstance(error, CredentialReadError):
        return NormalizedError(ErrorKind.CREDENTIAL_READ, _raw_message(error))
    if isinstance(error, NotConnectedError):
        return NormalizedError(ErrorKind.NOT_CONNECTED, _raw_message(error))
    kind = _typed_kind(error)
    if kind is ErrorKind.TIMEOUT:
        detail = str(error).strip()
        return NormalizedError(kind, f"{TIMEOUT_MESSAGE}: {detail}" if detail else TIMEOUT_MESSAGE)
    raw = _raw_message(error)
    if kind is not None:
        template = next((entry for entry in patterns if entry.kind is kind), None)
        return NormalizedError(kind, template.render(raw) if template else raw)
    for entry in patterns:
        if entry.matches(raw):
            return NormalizedError(entry.kind, entry.render(raw))
    return NormalizedError(ErrorKind.UNKNOWN, raw)


def _typed_kind(error: BaseException | str) -> ErrorKind | None:
    if isinstance(error, str):
        return None
    for error_type, kind in ERROR_TYPES:
        if isinstance(error, error_type):
            return kind
    if isinstance(error, api_exceptions.GoogleAPICallError):
        status = getattr(error.grpc_status_code, "name", None)
        return _STATUS_KINDS.get(status) if status else None
    return None


def _raw_message(error: BaseException | str) -> str:
    if isinstance(error, str):
        return error
    message = str(error).strip()
    return message or error.__class__.__name__


__all__ = [
    "CredentialReadError",
    "ERROR_PATTERNS",
    "ERROR_TYPES",
    "ErrorKind",
    "ErrorPattern",
    "FiredeskError",
    "NOT_CONNECTED_MESSAGE",
    "NormalizedError",
    "NotConnectedError",
    "QuerySourceError",
    "TIMEOUT_MESSAGE",
    "normalize_error",
]
