"""Unit tests for the exception hierarchy."""
from __future__ import annotations

import pytest

from account_service.core.exceptions import (
    AccountServiceError,
    BrokerConnectionError,
    DisposalError,
    EventBusError,
    OutboxPersistenceError,
    PublishRejectedError,
    UnknownEventKindError,
)


@pytest.mark.unit
class TestAccountServiceError:
    """Test suite for AccountServiceError and subclasses."""

    def test_defaults(self):
        error = AccountServiceError(detail="Something failed")

        assert str(error) == "Something failed"
        assert error.type == "account-service-error"
        assert error.extra == {}

    def test_to_dict(self):
        error = OutboxPersistenceError(detail="insert failed", extra={"operation": "create"})

        assert error.to_dict() == {
            "type": "outbox-persistence-error",
            "detail": "insert failed",
            "operation": "create",
        }

    @pytest.mark.parametrize(
        "error_class",
        [BrokerConnectionError, PublishRejectedError, DisposalError],
    )
    def test_event_bus_errors(self, error_class):
        error = error_class(detail="x")

        assert isinstance(error, EventBusError)
        assert isinstance(error, AccountServiceError)

    def test_outbox_error_is_not_event_bus_error(self):
        assert not issubclass(OutboxPersistenceError, EventBusError)

    def test_unknown_event_kind(self):
        error = UnknownEventKindError("UserCreateEvent")

        assert error.event_name == "UserCreateEvent"
        assert error.extra["event_name"] == "UserCreateEvent"
        assert "UserCreateEvent" in error.detail
