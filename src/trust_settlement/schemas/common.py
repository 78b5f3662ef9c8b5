"""Schemas shared by every API section."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AuditEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    subject_type: str
    subject_id: str
    event_type: str
    old_status: str | None
    new_status: str | None
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class ErrorResponse(BaseModel):
    """Body returned by the error middleware for every domain error."""

    error: str = Field(description="Machine-readable error code", examples=["NOT_FOUND"])
    message: str
    retryable: bool = False


class HealthResponse(BaseModel):
    """Liveness of the core and its stores.

    ``auto_release_backlog`` counts funded escrows already past their release
    time; a growing number means the sweep is not running.
    """

    status: str = "ok"
    version: str
    database: str = "unknown"
    redis: str = "unknown"
    collaborators: str
    auto_release_backlog: int | None = None
