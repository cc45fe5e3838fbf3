"""Integration event envelopes.

An envelope is ``{event_name, timestamp, <payload field>: snapshot}``.
Each concrete kind binds the discriminant, the name of the field holding the
snapshot, the snapshot type and the routing key producers use by default.

Envelopes are immutable. Replays never patch a stored record: they rebuild a
fresh envelope from the stored JSON through the registry.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, ClassVar, Literal
from uuid import UUID, uuid5

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from account_service.core.events.kinds import EventKind
from account_service.core.models import (
    Application,
    Child,
    Educator,
    Family,
    HealthProfessional,
    Institution,
    Snapshot,
    User,
)

OUTBOX_OPERATION_KEY = "__operation"
OUTBOX_ROUTING_KEY = "__routing_key"
PUBLISH_OPERATION = "publish"
MESSAGE_ID_NAMESPACE = UUID("6f1c2e4a-8b3d-5c7e-9a1f-2d4b6c8e0a13")


def format_timestamp(value: datetime) -> str:
    """Render an instant as ISO-8601 UTC with millisecond precision and ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class IntegrationEvent(BaseModel):
    """Base class for all integration event envelopes.

    Subclasses must define:
    - kind: ClassVar[EventKind] - discriminant stored in ``event_name``
    - payload_field: ClassVar[str] - name of the field carrying the snapshot
    - default_routing_key: ClassVar[str] - routing key used when the producer gives none

    Example:
        event = UserDeleteEvent(user=User(id="5a62be07", username="jdoe"))
        event.to_outbox_record()
        # {"event_name": "UserDeleteEvent", "timestamp": "...Z",
        #  "user": {...}, "__operation": "publish", "__routing_key": "users.delete"}
    """

    kind: ClassVar[EventKind]
    payload_field: ClassVar[str]
    default_routing_key: ClassVar[str]

    event_name: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the state change happened (UTC)",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    @field_validator("timestamp", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    @property
    def payload(self) -> Snapshot:
        """The domain snapshot carried by this envelope."""
        return getattr(self, self.payload_field)

    @property
    def message_id(self) -> str:
        """Broker message id derived from the envelope content.

        Rebuilding the envelope from its outbox record yields the same id, so
        consumers can drop a replayed delivery they have already handled.
        """
        body = json.dumps(self.to_json(), sort_keys=True, separators=(",", ":"))
        return str(uuid5(MESSAGE_ID_NAMESPACE, body))

    def to_json(self) -> dict[str, Any]:
        """Serialize to the envelope JSON published on the bus."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_outbox_record(self, routing_key: str | None = None) -> dict[str, Any]:
        """Serialize for outbox storage, adding the replay control fields."""
        return {
            **self.to_json(),
            OUTBOX_OPERATION_KEY: PUBLISH_OPERATION,
            OUTBOX_ROUTING_KEY: routing_key or self.default_routing_key,
        }

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"{self.__class__.__name__}("
            f"timestamp={format_timestamp(self.timestamp)}, "
            f"{self.payload_field}_id={getattr(self.payload, 'id', None)!r}"
            f")"
        )


class UserDeleteEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.USER_DELETE
    payload_field: ClassVar[str] = "user"
    default_routing_key: ClassVar[str] = "users.delete"

    event_name: Literal["UserDeleteEvent"] = "UserDeleteEvent"
    user: User


class ChildUpdateEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.CHILD_UPDATE
    payload_field: ClassVar[str] = "child"
    default_routing_key: ClassVar[str] = "children.update"

    event_name: Literal["ChildUpdateEvent"] = "ChildUpdateEvent"
    child: Child


class FamilyUpdateEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.FAMILY_UPDATE
    payload_field: ClassVar[str] = "family"
    default_routing_key: ClassVar[str] = "families.update"

    event_name: Literal["FamilyUpdateEvent"] = "FamilyUpdateEvent"
    family: Family


class EducatorUpdateEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.EDUCATOR_UPDATE
    payload_field: ClassVar[str] = "educator"
    default_routing_key: ClassVar[str] = "educators.update"

    event_name: Literal["EducatorUpdateEvent"] = "EducatorUpdateEvent"
    educator: Educator


class HealthProfessionalUpdateEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.HEALTH_PROFESSIONAL_UPDATE
    payload_field: ClassVar[str] = "healthprofessional"
    default_routing_key: ClassVar[str] = "healthprofessionals.update"

    event_name: Literal["HealthProfessionalUpdateEvent"] = "HealthProfessionalUpdateEvent"
    healthprofessional: HealthProfessional


class ApplicationUpdateEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.APPLICATION_UPDATE
    payload_field: ClassVar[str] = "application"
    default_routing_key: ClassVar[str] = "applications.update"

    event_name: Literal["ApplicationUpdateEvent"] = "ApplicationUpdateEvent"
    application: Application


class InstitutionDeleteEvent(IntegrationEvent):
    kind: ClassVar[EventKind] = EventKind.INSTITUTION_DELETE
    payload_field: ClassVar[str] = "institution"
    default_routing_key: ClassVar[str] = "institutions.delete"

    event_name: Literal["InstitutionDeleteEvent"] = "InstitutionDeleteEvent"
    institution: Institution


__all__ = [
    "OUTBOX_OPERATION_KEY",
    "OUTBOX_ROUTING_KEY",
    "PUBLISH_OPERATION",
    "ApplicationUpdateEvent",
    "ChildUpdateEvent",
    "EducatorUpdateEvent",
    "FamilyUpdateEvent",
    "HealthProfessionalUpdateEvent",
    "InstitutionDeleteEvent",
    "IntegrationEvent",
    "UserDeleteEvent",
    "format_timestamp",
]
