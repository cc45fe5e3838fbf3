"""The closed set of integration event kinds."""

from __future__ import annotations

from enum import StrEnum


class EventKind(StrEnum):
    """Discriminant values stored in ``event_name``.

    The set is closed: records carrying any other name are reported as
    unrecognized instead of being replayed.
    """

    USER_DELETE = "UserDeleteEvent"
    CHILD_UPDATE = "ChildUpdateEvent"
    FAMILY_UPDATE = "FamilyUpdateEvent"
    EDUCATOR_UPDATE = "EducatorUpdateEvent"
    HEALTH_PROFESSIONAL_UPDATE = "HealthProfessionalUpdateEvent"
    APPLICATION_UPDATE = "ApplicationUpdateEvent"
    INSTITUTION_DELETE = "InstitutionDeleteEvent"

    @classmethod
    def parse(cls, value: object) -> EventKind | None:
        """Return the kind named by ``value`` or ``None`` when it is not one."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


__all__ = ["EventKind"]
