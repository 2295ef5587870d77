"""Tests for Firestore error normalization."""

from __future__ import annotations

import re

import pytest
from google.api_core import exceptions as api_exceptions

from firedesk.errors import (
    ERROR_PATTERNS,
    CredentialReadError,
    ErrorKind,
    ErrorPattern,
    NotConnectedError,
    normalize_error,
)


def test_not_found_maps_to_database_not_found() -> None:
    result = normalize_error("5 NOT_FOUND: database not found")

    assert result.kind is ErrorKind.DATABASE_NOT_FOUND
    assert "Firestore database not found" in result.message
    assert "5 NOT_FOUND: database not found" in result.message


def test_permission_denied_maps_to_permission_denied() -> None:
    result = normalize_error(RuntimeError("PERMISSION_DENIED: insufficient permissions"))

    assert result.kind is ErrorKind.PERMISSION_DENIED
    assert "Permission denied" in result.message
    assert "insufficient permissions" in result.message


def test_first_matching_pattern_wins() -> None:
    result = normalize_error("7 PERMISSION_DENIED: caller lacks access; NOT_FOUND upstream")

    assert result.kind is ErrorKind.DATABASE_NOT_FOUND


def test_unknown_messages_pass_through_unchanged() -> None:
    result = normalize_error(ValueError("deadline exceeded while streaming"))

    assert result.kind is ErrorKind.UNKNOWN
    assert result.message == "deadline exceeded while streaming"


def test_normalization_is_pure() -> None:
    first = normalize_error("5 NOT_FOUND: gone")
    second = normalize_error(RuntimeError("5 NOT_FOUND: gone"))

    assert first == second


def test_empty_exception_message_falls_back_to_class_name() -> None:
    assert normalize_error(KeyError()).message == "KeyError"


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (CredentialReadError("Failed to read service account 'x': missing project_id"), ErrorKind.CREDENTIAL_READ),
        (NotConnectedError(), ErrorKind.NOT_CONNECTED),
        (TimeoutError(), ErrorKind.TIMEOUT),
    ],
)
def test_typed_failures_use_their_category(error: BaseException, kind: ErrorKind) -> None:
    assert normalize_error(error).kind is kind


def test_timeout_message_mentions_firestore() -> None:
    assert normalize_error(TimeoutError()).message == "Timed out waiting for Firestore"


def test_custom_pattern_table_can_be_extended() -> None:
    patterns = (
        ErrorPattern(
            kind=ErrorKind.TIMEOUT,
            pattern=re.compile(r"DEADLINE_EXCEEDED"),
            template="Deadline exceeded: {detail}",
        ),
        *ERROR_PATTERNS,
    )

    result = normalize_error("4 DEADLINE_EXCEEDED: slow", patterns=patterns)

    assert result.kind is ErrorKind.TIMEOUT
    assert result.message == "Deadline exceeded: 4 DEADLINE_EXCEEDED: slow"


def test_client_not_found_exception_maps_by_type() -> None:
    error = api_exceptions.NotFound("The database (default) does not exist for project p1")

    result = normalize_error(error)

    assert result.kind is ErrorKind.DATABASE_NOT_FOUND
    assert result.message == "Firestore database not found: 404 The database (default) does not exist for project p1"


def test_client_permission_denied_exception_maps_by_type() -> None:
    result = normalize_error(api_exceptions.PermissionDenied("Missing or insufficient permissions."))

    assert result.kind is ErrorKind.PERMISSION_DENIED
    assert result.message == "Permission denied: 403 Missing or insufficient permissions."


def test_client_deadline_exceeded_maps_to_timeout() -> None:
    result = normalize_error(api_exceptions.DeadlineExceeded("query took too long"))

    assert result.kind is ErrorKind.TIMEOUT
    assert result.message == "Timed out waiting for Firestore: 504 query took too long"


def test_client_exception_type_wins_over_message_text() -> None:
    result = normalize_error(api_exceptions.PermissionDenied("NOT_FOUND mentioned in detail"))

    assert result.kind is ErrorKind.PERMISSION_DENIED


def test_other_client_exceptions_fall_back_to_patterns() -> None:
    unavailable = normalize_error(api_exceptions.ServiceUnavailable("backend restarting"))
    relayed = normalize_error(api_exceptions.InternalServerError("upstream said PERMISSION_DENIED"))

    assert unavailable.kind is ErrorKind.UNKNOWN
    assert unavailable.message == "503 backend restarting"
    assert relayed.kind is ErrorKind.PERMISSION_DENIED
