"""
Admin override model.

One temporary correction applied to one user for one action type.
The override has a small state machine: it starts ACTIVE and ends
either EXPIRED (time-based lapse) or REVERTED (operator decision).
Both end states are terminal.

The partial unique index is what keeps two corrections of the same
conflict group from stacking on one user. conflict_key is the action
type itself, or a shared group name for actions that write the same
fields. The index lives in the database so it holds across every
process that shares it.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, DateTime, Text, JSON, Index,
    Enum as SAEnum, Uuid, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from override_engine.models.base import Base, utcnow
from override_engine.models.enums import OverrideActionType, OverrideStatus


VALID_TRANSITIONS: dict[OverrideStatus, set[OverrideStatus]] = {
    OverrideStatus.ACTIVE: {OverrideStatus.EXPIRED, OverrideStatus.REVERTED},
    OverrideStatus.EXPIRED: set(),
    OverrideStatus.REVERTED: set(),
}

ACTIVE_ONLY = text("status = 'active'")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class AdminOverride(Base):
    __tablename__ = "admin_overrides"
    __table_args__ = (
        Index(
            "uq_admin_overrides_active_target_conflict",
            "target_user_id",
            "conflict_key",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
        Index("ix_admin_overrides_status_expires", "status", "override_expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    target_user_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    admin_actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action_type: Mapped[OverrideActionType] = mapped_column(
        SAEnum(
            OverrideActionType,
            name="override_action_type_enum",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    conflict_key: Mapped[str] = mapped_column(String(64), nullable=False)
    override_reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[OverrideStatus] = mapped_column(
        SAEnum(
            OverrideStatus,
            name="override_status_enum",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OverrideStatus.ACTIVE,
    )
    override_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    previous_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reverted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    reverted_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True, default=None
    )
    revert_reason: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None
    )
    expired_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    @property
    def is_active(self) -> bool:
        return self.status == OverrideStatus.ACTIVE

    def can_transition_to(self, new_status: OverrideStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return (
            f"<AdminOverride {self.id} {self.action_type.value} "
            f"user={self.target_user_id} ({self.status.value})>"
        )
