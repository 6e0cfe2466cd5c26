"""
Override audit log model.

Records every override transition for compliance and forensics.
Entries must stay readable even if the override they describe is
ever purged, so the link back to the override is nullable.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Text, JSON, ForeignKey, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from override_engine.models.base import Base, utcnow


class OverrideAuditLog(Base):
    """
    Immutable record of one override transition.

    Audit entries are append-only. You never update or delete
    an audit record; the mapper refuses to flush either.
    """

    __tablename__ = "override_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    override_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("admin_overrides.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    admin_actor_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    affected_user_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    override_reason: Mapped[str] = mapped_column(Text, nullable=False)
    previous_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<OverrideAuditLog {self.id} {self.action_type} "
            f"user={self.affected_user_id}>"
        )


@event.listens_for(OverrideAuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise ValueError(f"Audit entry {target.id} is append-only and cannot be updated")


@event.listens_for(OverrideAuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise ValueError(f"Audit entry {target.id} is append-only and cannot be deleted")
