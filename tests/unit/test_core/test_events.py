"""Unit tests for integration event envelopes and the event registry."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from account_service.core.events import (
    OUTBOX_OPERATION_KEY,
    OUTBOX_ROUTING_KEY,
    ApplicationUpdateEvent,
    ChildUpdateEvent,
    EducatorUpdateEvent,
    EventKind,
    EventRegistry,
    FamilyUpdateEvent,
    HealthProfessionalUpdateEvent,
    InstitutionDeleteEvent,
    UnrecognizedEvent,
    UserDeleteEvent,
    build_default_registry,
    event_registry,
    format_timestamp,
)
from account_service.core.exceptions import UnknownEventKindError
from account_service.core.models import Child, Institution, User

KIND_TABLE = [
    (UserDeleteEvent, "UserDeleteEvent", "user", "users.delete"),
    (ChildUpdateEvent, "ChildUpdateEvent", "child", "children.update"),
    (FamilyUpdateEvent, "FamilyUpdateEvent", "family", "families.update"),
    (EducatorUpdateEvent, "EducatorUpdateEvent", "educator", "educators.update"),
    (
        HealthProfessionalUpdateEvent,
        "HealthProfessionalUpdateEvent",
        "healthprofessional",
        "healthprofessionals.update",
    ),
    (ApplicationUpdateEvent, "ApplicationUpdateEvent", "application", "applications.update"),
    (InstitutionDeleteEvent, "InstitutionDeleteEvent", "institution", "institutions.delete"),
]


@pytest.mark.unit
class TestEventKind:
    """Test suite for the closed EventKind set."""

    def test_parse_known_name(self):
        assert EventKind.parse("UserDeleteEvent") is EventKind.USER_DELETE

    @pytest.mark.parametrize("value", ["UserCreateEvent", "", None, 42, "userdeleteevent"])
    def test_parse_unknown_returns_none(self, value):
        assert EventKind.parse(value) is None

    def test_kind_set_is_closed(self):
        assert {kind.value for kind in EventKind} == {row[1] for row in KIND_TABLE}


@pytest.mark.unit
class TestEnvelope:
    """Test suite for envelope serialization."""

    @pytest.mark.parametrize(("event_class", "name", "field", "routing_key"), KIND_TABLE)
    def test_kind_table(self, event_class, name, field, routing_key):
        """Each kind binds its discriminant, payload field and canonical routing key."""
        assert event_class.kind == name
        assert event_class.payload_field == field
        assert event_class.default_routing_key == routing_key

    def test_timestamp_format(self):
        stamp = datetime(2021, 3, 1, 12, 0, 0, 123456, tzinfo=UTC)

        assert format_timestamp(stamp) == "2021-03-01T12:00:00.123Z"

    def test_timestamp_is_converted_to_utc(self):
        stamp = datetime(2021, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        event = UserDeleteEvent(user=User(id="1"), timestamp=stamp)

        assert event.to_json()["timestamp"] == "2021-03-01T12:00:00.000Z"

    def test_timestamp_defaults_to_now(self):
        before = datetime.now(UTC)
        event = UserDeleteEvent(user=User(id="1"))

        assert before <= event.timestamp <= datetime.now(UTC)

    def test_to_json_shape(self, user_delete_event):
        data = user_delete_event.to_json()

        assert set(data) == {"event_name", "timestamp", "user"}
        assert data["event_name"] == "UserDeleteEvent"
        assert data["user"]["id"] == "5a62be07de34500146d9c544"
        assert "password" not in data["user"]

    def test_to_outbox_record_defaults_routing_key(self, user_delete_event):
        record = user_delete_event.to_outbox_record()

        assert record[OUTBOX_OPERATION_KEY] == "publish"
        assert record[OUTBOX_ROUTING_KEY] == "users.delete"

    def test_to_outbox_record_custom_routing_key(self, user_delete_event):
        record = user_delete_event.to_outbox_record("custom.key")

        assert record[OUTBOX_ROUTING_KEY] == "custom.key"

    def test_payload_property(self):
        event = InstitutionDeleteEvent(institution=Institution(id="i1"))

        assert event.payload == Institution(id="i1")

    def test_message_id_survives_reconstruction(self, user_delete_event):
        rebuilt = event_registry.reconstruct(user_delete_event.to_outbox_record("custom.key"))

        assert rebuilt.message_id == user_delete_event.message_id

    def test_message_id_differs_per_event(self):
        stamp = datetime(2021, 3, 1, 12, 0, tzinfo=UTC)
        first = UserDeleteEvent(user=User(id="1"), timestamp=stamp)
        second = UserDeleteEvent(user=User(id="1"), timestamp=stamp + timedelta(seconds=1))
        other_user = UserDeleteEvent(user=User(id="2"), timestamp=stamp)

        assert first.message_id == UserDeleteEvent(user=User(id="1"), timestamp=stamp).message_id
        assert len({first.message_id, second.message_id, other_user.message_id}) == 3

    def test_event_name_is_fixed_per_kind(self):
        with pytest.raises(ValueError):
            UserDeleteEvent.model_validate({"event_name": "ChildUpdateEvent", "user": {"id": "1"}})


@pytest.mark.unit
class TestEventRegistry:
    """Test suite for EventRegistry."""

    def test_default_registry_has_every_kind(self):
        assert len(event_registry) == len(EventKind)
        assert set(event_registry.list_types()) == {kind.value for kind in EventKind}

    def test_get_or_raise_unknown(self):
        with pytest.raises(UnknownEventKindError) as exc_info:
            event_registry.get_or_raise("UserCreateEvent")

        assert exc_info.value.event_name == "UserCreateEvent"

    def test_register_conflict(self):
        registry = build_default_registry()

        class OtherUserDelete(UserDeleteEvent):
            pass

        with pytest.raises(ValueError, match="already registered"):
            registry.register(OtherUserDelete)

    def test_register_same_class_twice_is_allowed(self):
        registry = EventRegistry()
        registry.register(UserDeleteEvent)
        registry.register(UserDeleteEvent)

        assert len(registry) == 1
        assert "UserDeleteEvent" in registry

    def test_reconstruct_round_trip(self, user_delete_event):
        """A stored record rebuilds an equal envelope without the control fields."""
        record = user_delete_event.to_outbox_record()

        rebuilt = event_registry.reconstruct(record)

        assert isinstance(rebuilt, UserDeleteEvent)
        assert rebuilt.to_json() == user_delete_event.to_json()

    def test_reconstruct_child_update(self):
        record = ChildUpdateEvent(child=Child(id="c1", age=7)).to_outbox_record()

        rebuilt = event_registry.reconstruct(record)

        assert isinstance(rebuilt, ChildUpdateEvent)
        assert rebuilt.child.age == 7

    def test_reconstruct_tolerates_unexpected_snapshot_values(self):
        """Loose stored values still rebuild instead of being dead-lettered."""
        record = {
            "event_name": "ApplicationUpdateEvent",
            "timestamp": "2021-03-01T12:00:00.000Z",
            "__routing_key": "applications.update",
            "application": {"id": "a1", "type": "Application", "application_name": "x" * 300},
        }

        rebuilt = event_registry.reconstruct(record)

        assert isinstance(rebuilt, ApplicationUpdateEvent)
        assert rebuilt.application.type == "Application"
        assert len(rebuilt.application.application_name) == 300

    def test_reconstruct_does_not_mutate_payload(self, user_delete_event):
        record = user_delete_event.to_outbox_record()
        snapshot = dict(record)

        event_registry.reconstruct(record)

        assert record == snapshot

    @pytest.mark.parametrize(
        ("payload", "reason"),
        [
            ([1, 2], "payload is not a JSON object"),
            ({"__routing_key": "users.delete"}, "missing event_name"),
            (
                {"event_name": "UserCreateEvent", "__routing_key": "users.create", "user": {}},
                "unknown event_name 'UserCreateEvent'",
            ),
            ({"event_name": "UserDeleteEvent", "user": {"id": "1"}}, "missing routing key"),
            (
                {"event_name": "UserDeleteEvent", "__routing_key": "", "user": {"id": "1"}},
                "missing routing key",
            ),
            (
                {"event_name": "UserDeleteEvent", "__routing_key": "users.delete"},
                "missing 'user' payload",
            ),
            (
                {
                    "event_name": "ChildUpdateEvent",
                    "__routing_key": "children.update",
                    "child": {"id": ["c1"], "type": "child"},
                },
                "invalid payload",
            ),
        ],
    )
    def test_reconstruct_unrecognized(self, payload, reason):
        """Anything that cannot be rebuilt comes back as UnrecognizedEvent, never raises."""
        result = event_registry.reconstruct(payload)

        assert isinstance(result, UnrecognizedEvent)
        assert result.reason == reason
        assert result.raw is payload

    def test_reconstruct_invalid_payload_keeps_errors(self):
        result = event_registry.reconstruct(
            {
                "event_name": "ChildUpdateEvent",
                "__routing_key": "children.update",
                "child": {"age": {"years": 8}},
            }
        )

        assert isinstance(result, UnrecognizedEvent)
        assert result.event_name == "ChildUpdateEvent"
        assert result.errors

    def test_reconstruct_errors_empty_for_structural_reasons(self):
        result = event_registry.reconstruct({"event_name": "UserDeleteEvent", "user": {"id": "1"}})

        assert isinstance(result, UnrecognizedEvent)
        assert result.reason == "missing routing key"
        assert result.errors == []
