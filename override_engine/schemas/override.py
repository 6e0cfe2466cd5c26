"""
Pydantic schemas for override operations.

The admin panel speaks camelCase JSON, so every schema here uses
camelCase aliases on the wire while Python code keeps snake_case
field names.
"""

import uuid
from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from override_engine.models.enums import OverrideActionType, OverrideStatus


def _to_naive_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


# --- Request Schemas ---

class OverrideApplyRequest(CamelModel):
    """
    Request to apply an override.

    The reason is checked by the service rather than here, so an
    empty reason is reported as a validation error naming the rule.
    """
    target_user_id: str = Field(max_length=100)
    action_type: OverrideActionType
    override_reason: str
    override_expires_at: datetime | None = None

    @field_validator("override_expires_at")
    @classmethod
    def expiry_to_utc(cls, v: datetime | None) -> datetime | None:
        return _to_naive_utc(v)


class OverrideRevertRequest(CamelModel):
    reason: str


class AuditLogFilter(CamelModel):
    """Optional filters for the audit log. All bounds are inclusive."""
    actor_id: str | None = None
    target_user_id: str | None = None
    override_id: uuid.UUID | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int = Field(default=500, ge=1, le=5000)

    @field_validator("since", "until")
    @classmethod
    def bounds_to_utc(cls, v: datetime | None) -> datetime | None:
        return _to_naive_utc(v)

    @field_validator("target_user_id")
    @classmethod
    def strip_target(cls, v: str | None) -> str | None:
        return v.strip() if v else v


# --- Response Schemas ---

class OverrideResponse(CamelModel):
    id: uuid.UUID
    target_user_id: str
    admin_actor_id: str
    action_type: OverrideActionType
    override_reason: str
    status: OverrideStatus
    override_expires_at: datetime | None
    previous_state: dict | None
    new_state: dict | None
    reverted_at: datetime | None
    reverted_by: str | None
    revert_reason: str | None
    expired_at: datetime | None
    created_at: datetime


class AuditLogEntryResponse(CamelModel):
    id: int
    override_id: uuid.UUID | None
    admin_actor_id: str
    affected_user_id: str
    action_type: str
    override_reason: str
    previous_state: dict | None
    new_state: dict | None
    metadata: dict | None = Field(
        default=None,
        validation_alias=AliasChoices("event_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime


class ActionTypeResponse(CamelModel):
    """One entry of the action catalog shown to operators."""
    value: OverrideActionType
    label: str
    description: str
    conflict_group: str | None = None
