"""Unit tests for the publish-or-persist producer helper."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from account_service.core.events import (
    ChildUpdateEvent,
    EducatorUpdateEvent,
    FamilyUpdateEvent,
    HealthProfessionalUpdateEvent,
    InstitutionDeleteEvent,
    IntegrationEventPublisher,
    UserDeleteEvent,
    event_registry,
)
from account_service.core.exceptions import OutboxPersistenceError, PublishRejectedError
from account_service.core.models import (
    Child,
    Educator,
    Family,
    HealthProfessional,
    Institution,
    User,
)


@pytest.mark.unit
class TestIntegrationEventPublisher:
    """Test suite for IntegrationEventPublisher.publish."""

    @pytest.mark.asyncio
    async def test_delivered_event_is_not_saved(self, fake_bus, memory_outbox, user_delete_event):
        publisher = IntegrationEventPublisher(fake_bus, memory_outbox)

        assert await publisher.publish(user_delete_event) is True
        assert fake_bus.published == [(user_delete_event, "users.delete")]
        assert await memory_outbox.count() == 0

    @pytest.mark.asyncio
    async def test_disconnected_bus_saves_to_outbox(self, fake_bus, memory_outbox, user_delete_event):
        """False from the bus stores the envelope with its routing key."""
        fake_bus.deliver = False
        publisher = IntegrationEventPublisher(fake_bus, memory_outbox)

        assert await publisher.publish(user_delete_event) is False

        [record] = await memory_outbox.find()
        assert record.event_name == "UserDeleteEvent"
        assert record.routing_key == "users.delete"
        assert record.operation == "publish"
        assert record.payload["user"] == user_delete_event.to_json()["user"]

    @pytest.mark.asyncio
    async def test_rejected_publish_saves_to_outbox(self, fake_bus, memory_outbox, user_delete_event):
        fake_bus.deliver = PublishRejectedError(detail="channel closed")
        publisher = IntegrationEventPublisher(fake_bus, memory_outbox)

        assert await publisher.publish(user_delete_event, "custom.key") is False

        [record] = await memory_outbox.find()
        assert record.routing_key == "custom.key"

    @pytest.mark.asyncio
    async def test_unexpected_error_saves_to_outbox(self, fake_bus, memory_outbox, user_delete_event):
        fake_bus.deliver = RuntimeError("boom")
        publisher = IntegrationEventPublisher(fake_bus, memory_outbox)

        assert await publisher.publish(user_delete_event) is False
        assert await memory_outbox.count() == 1

    @pytest.mark.asyncio
    async def test_saved_record_reconstructs(self, fake_bus, memory_outbox):
        fake_bus.deliver = False
        publisher = IntegrationEventPublisher(fake_bus, memory_outbox)
        event = ChildUpdateEvent(child=Child(id="c1", username="kid"))

        await publisher.publish(event)

        [record] = await memory_outbox.find()
        rebuilt = event_registry.reconstruct(record.payload)
        assert isinstance(rebuilt, ChildUpdateEvent)
        assert rebuilt.child == event.child

    @pytest.mark.asyncio
    async def test_outbox_failure_propagates(self, fake_bus, user_delete_event):
        fake_bus.deliver = False
        outbox = AsyncMock()
        outbox.create.side_effect = OutboxPersistenceError(detail="db down")
        publisher = IntegrationEventPublisher(fake_bus, outbox)

        with pytest.raises(OutboxPersistenceError):
            await publisher.publish(user_delete_event)


@pytest.mark.unit
class TestEnvelopeBuilders:
    """Test suite for the envelope builders."""

    def test_user_deleted_uses_generic_user(self):
        event = IntegrationEventPublisher.user_deleted(Child(id="c1", gender="male"))

        assert isinstance(event, UserDeleteEvent)
        assert type(event.user) is User
        assert event.user.type == "child"

    @pytest.mark.parametrize(
        ("snapshot", "event_class"),
        [
            (Child(id="c1"), ChildUpdateEvent),
            (Family(id="f1"), FamilyUpdateEvent),
            (Educator(id="e1"), EducatorUpdateEvent),
            (HealthProfessional(id="h1"), HealthProfessionalUpdateEvent),
        ],
    )
    def test_user_updated_picks_kind(self, snapshot, event_class):
        event = IntegrationEventPublisher.user_updated(snapshot)

        assert isinstance(event, event_class)
        assert event.payload == snapshot

    def test_user_updated_plain_user(self):
        with pytest.raises(TypeError):
            IntegrationEventPublisher.user_updated(User(id="1"))

    def test_institution_deleted(self):
        event = IntegrationEventPublisher.institution_deleted(Institution(id="i1", name="School"))

        assert isinstance(event, InstitutionDeleteEvent)
        assert event.to_json()["institution"] == {"id": "i1", "name": "School"}
