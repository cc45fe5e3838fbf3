"""Domain snapshots carried inside integration events.

These are the read-only views of account entities that travel on the bus.
They are deliberately lenient: unknown keys (``password`` in particular)
are dropped on input and never re-emitted, and every field is optional so
that partially filled payloads coming back from the outbox still load.
The ``type`` tag of each subtype only supplies a default; a stored value
that differs from it is kept as-is rather than rejected.

The flat ``institution_id`` form accepted by the REST layer is folded into
a nested ``Institution(id=...)``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class UserType(StrEnum):
    """Account types known to the service."""

    CHILD = "child"
    EDUCATOR = "educator"
    HEALTH_PROFESSIONAL = "healthprofessional"
    FAMILY = "family"
    APPLICATION = "application"
    ADMIN = "admin"


class Snapshot(BaseModel):
    """Base for all snapshots: lenient input, compact JSON output."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    def to_json(self) -> dict[str, Any]:
        """Serialize to the JSON shape used on the bus (``None`` fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)


class Institution(Snapshot):
    id: str | None = None
    type: str | None = None
    name: str | None = None
    address: str | None = None
    latitude: float | str | None = None
    longitude: float | str | None = None


class User(Snapshot):
    """Generic user snapshot, used as-is for deletions."""

    id: str | None = None
    username: str | None = None
    type: str | None = None
    institution: Institution | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_institution_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("institution") is None and data.get("institution_id"):
            data = {**data, "institution": {"id": data["institution_id"]}}
        return data


class Child(User):
    type: str | None = UserType.CHILD.value
    gender: str | None = None
    age: int | str | None = None


class Family(User):
    type: str | None = UserType.FAMILY.value
    children: list[Child] | None = None


class ChildrenGroup(Snapshot):
    id: str | None = None
    name: str | None = None
    school_class: str | None = None
    children: list[Child] | None = None


class Educator(User):
    type: str | None = UserType.EDUCATOR.value
    children_groups: list[ChildrenGroup] | None = None


class HealthProfessional(User):
    type: str | None = UserType.HEALTH_PROFESSIONAL.value
    children_groups: list[ChildrenGroup] | None = None


class Application(User):
    type: str | None = UserType.APPLICATION.value
    application_name: str | None = None


__all__ = [
    "Application",
    "Child",
    "ChildrenGroup",
    "Educator",
    "Family",
    "HealthProfessional",
    "Institution",
    "Snapshot",
    "User",
    "UserType",
]
