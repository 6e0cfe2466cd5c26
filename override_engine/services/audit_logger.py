"""
Audit logger — the append-only trail of override transitions.

The only operation is record(). There is deliberately no way to
update or delete an entry through this service, and the model
rejects both at flush time.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from override_engine.models.audit_log import OverrideAuditLog
from override_engine.models.base import utcnow
from override_engine.models.enums import OverrideActionType


class AuditLogger:

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        *,
        override_id: uuid.UUID | None,
        admin_actor_id: str,
        affected_user_id: str,
        action_type: OverrideActionType | str,
        override_reason: str,
        previous_state: dict | None = None,
        new_state: dict | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> OverrideAuditLog:
        """
        Write one immutable audit entry.

        The entry is flushed with the caller's transaction, so it
        commits or rolls back together with the transition it records.
        """
        if isinstance(action_type, OverrideActionType):
            action_type = action_type.value

        entry = OverrideAuditLog(
            override_id=override_id,
            admin_actor_id=admin_actor_id,
            affected_user_id=affected_user_id,
            action_type=action_type,
            override_reason=override_reason,
            previous_state=previous_state,
            new_state=new_state,
            event_metadata=metadata,
            created_at=created_at or utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry
