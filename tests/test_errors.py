"""Unit tests for the store error taxonomy."""

import pytest

from climasync.errors import (
    FOREIGN_KEY_VIOLATION,
    JWT_EXPIRED,
    NO_ROWS,
    UNIQUE_VIOLATION,
    AuthorizationError,
    ConstraintError,
    ErrorKind,
    NotFoundError,
    StoreError,
    TransientStoreError,
    classify,
    user_message,
)


class TestClassify:
    """Tests for mapping exceptions to error kinds."""

    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (ConstraintError(), ErrorKind.CONSTRAINT),
            (AuthorizationError("expired"), ErrorKind.AUTHORIZATION),
            (NotFoundError("gone"), ErrorKind.NOT_FOUND),
            (TimeoutError(), ErrorKind.TIMEOUT),
            (TransientStoreError("HTTP 503"), ErrorKind.TRANSIENT),
            (StoreError("dup", code=UNIQUE_VIOLATION), ErrorKind.CONSTRAINT),
            (StoreError("jwt", code=JWT_EXPIRED), ErrorKind.AUTHORIZATION),
            (StoreError("fk", code=FOREIGN_KEY_VIOLATION), ErrorKind.NOT_FOUND),
            (StoreError("none", code=NO_ROWS), ErrorKind.NOT_FOUND),
            (StoreError("boom"), ErrorKind.UNKNOWN),
            (ValueError("other"), ErrorKind.UNKNOWN),
        ],
    )
    def test_classify(self, exc, kind):
        assert classify(exc) is kind

    def test_constraint_error_default_code(self):
        assert ConstraintError().code == UNIQUE_VIOLATION

    def test_subclasses_are_store_errors(self):
        for cls in (TransientStoreError, ConstraintError, AuthorizationError, NotFoundError):
            assert issubclass(cls, StoreError)


class TestUserMessage:
    """Tests for user-facing messages."""

    def test_transient_names_the_action(self):
        assert user_message(ErrorKind.TRANSIENT, "load comments") == (
            "Failed to load comments. Check your connection and try again."
        )

    def test_timeout_names_the_action(self):
        assert "join team" in user_message(ErrorKind.TIMEOUT, "join team")

    def test_fixed_messages(self):
        assert user_message(ErrorKind.CONSTRAINT, "x") == "Already done"
        assert user_message(ErrorKind.NOT_FOUND, "x") == "This item is no longer available"
        assert "sign in" in user_message(ErrorKind.AUTHORIZATION, "x")

    def test_unknown(self):
        assert user_message(ErrorKind.UNKNOWN, "save reaction") == "Failed to save reaction"
