"""
Query service — the read-only side of the override engine.

Nothing here writes, so any number of callers can use it at once.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from override_engine.errors import NotFoundError, ValidationError
from override_engine.models.audit_log import OverrideAuditLog
from override_engine.models.override import AdminOverride
from override_engine.schemas.override import AuditLogFilter
from override_engine.services.override_store import OverrideStore


class QueryService:

    def __init__(self, db: Session):
        self.db = db
        self.store = OverrideStore(db)

    def get_override(self, override_id: uuid.UUID) -> AdminOverride:
        override = self.store.get(override_id)
        if not override:
            raise NotFoundError(f"Override {override_id} not found")
        return override

    def list_active(self) -> list[AdminOverride]:
        return self.store.list_active()

    def list_for_target(self, target_user_id: str) -> list[AdminOverride]:
        # Ids are stored stripped, the way apply normalizes them
        return self.store.list_for_target(target_user_id.strip())

    def list_audit_log(
        self, filters: AuditLogFilter | None = None
    ) -> list[OverrideAuditLog]:
        """
        Return audit entries in the order they were written.

        Entries are insert-only with an increasing id, so ordering by
        id is the exact chronological order even when two entries
        share a timestamp.
        """
        filters = filters or AuditLogFilter()
        if filters.since and filters.until and filters.since > filters.until:
            raise ValidationError("'since' must not be later than 'until'")

        query = select(OverrideAuditLog)
        if filters.actor_id:
            query = query.where(OverrideAuditLog.admin_actor_id == filters.actor_id)
        if filters.target_user_id:
            query = query.where(
                OverrideAuditLog.affected_user_id == filters.target_user_id
            )
        if filters.override_id:
            query = query.where(OverrideAuditLog.override_id == filters.override_id)
        if filters.since:
            query = query.where(OverrideAuditLog.created_at >= filters.since)
        if filters.until:
            query = query.where(OverrideAuditLog.created_at <= filters.until)

        entries = self.db.execute(
            query.order_by(OverrideAuditLog.id).limit(filters.limit)
        ).scalars().all()
        return list(entries)
