"""Pydantic models for the Note Manager.

``Note`` is the leaf value owned by the store.  ``AddNote`` and
``DeleteNote`` form the closed ``Action`` union recorded on the
undo/redo stacks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ID_LENGTH = 12  # hex characters, 48 bits


def generate_id() -> str:
    """Return a new compact random note id."""
    return uuid4().hex[:ID_LENGTH]


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC. Values without an offset are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Note(BaseModel):
    """A single note with identity and timestamps."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: str = Field(default_factory=generate_id, min_length=1, frozen=True)
    title: str = Field(..., description="Note title")
    content: str = Field(..., description="Note content")
    created_at: datetime = Field(
        default_factory=utc_now, frozen=True, description="Creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=utc_now, description="Last update timestamp"
    )

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Note":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self

    @classmethod
    def create(
        cls,
        title: str,
        content: str,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> "Note":
        """Build a note, filling in a fresh id and timestamps where omitted."""
        now = utc_now()
        created = as_utc(created_at) if created_at else now
        updated = as_utc(updated_at) if updated_at else max(now, created)
        return cls(
            id=id or generate_id(),
            title=title,
            content=content,
            created_at=created,
            updated_at=updated,
        )

    def update(self, title: str, content: str) -> None:
        """Replace title and content and bump ``updated_at``."""
        self.title = title
        self.content = content
        self.updated_at = max(utc_now(), self.created_at)

    def describe(self) -> str:
        """Human-readable rendering of every field."""
        return (
            f"ID: {self.id}\n"
            f"Title: {self.title}\n"
            f"Content: {self.content}\n"
            f"Created At: {self.created_at.isoformat()}\n"
            f"Updated At: {self.updated_at.isoformat()}"
        )

    def to_record(self) -> dict[str, str]:
        """Flat JSON-ready record using the persisted field names."""
        return self.model_dump(mode="json", by_alias=True)


class AddNote(BaseModel):
    """Undo log entry for a note that was added."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["addNote"] = "addNote"
    note: Note


class DeleteNote(BaseModel):
    """Undo log entry for a removed note, with the index it was removed from."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["deleteNote"] = "deleteNote"
    note: Note
    position: int = Field(0, ge=0)


Action = Annotated[Union[AddNote, DeleteNote], Field(discriminator="kind")]


class Notification(BaseModel):
    """Outcome of a store operation, delivered to the store's notifier."""

    level: Literal["info", "error"] = "info"
    message: str
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.level == "error"
