"""
Override store — the single source of truth for override status.

Two database-level mechanisms keep overrides consistent even when
several processes share the database:

1. A partial unique index allows one ACTIVE row per
   (target_user_id, conflict_key). Actions that write the same
   fields share a conflict key, so reserving a slot that any of
   them holds fails the insert.
2. Status changes are a compare-and-set: UPDATE ... WHERE status =
   'active'. If another transaction got there first, no row matches
   and the caller learns it lost.

The store flushes but never commits. The caller owns the transaction.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from override_engine.errors import ConflictError
from override_engine.handlers.actions import conflict_key
from override_engine.models.enums import OverrideActionType, OverrideStatus
from override_engine.models.override import AdminOverride


class OverrideStore:

    def __init__(self, db: Session):
        self.db = db

    def get(self, override_id: uuid.UUID) -> AdminOverride | None:
        return self.db.get(AdminOverride, override_id)

    def find_active(
        self, target_user_id: str, action_type: OverrideActionType
    ) -> AdminOverride | None:
        """The active override, if any, that blocks applying this action."""
        return self.db.execute(
            select(AdminOverride).where(
                AdminOverride.target_user_id == target_user_id,
                AdminOverride.conflict_key == conflict_key(action_type),
                AdminOverride.status == OverrideStatus.ACTIVE,
            )
        ).scalar_one_or_none()

    def reserve(self, override: AdminOverride) -> AdminOverride:
        """
        Insert a new ACTIVE override.

        Raises ConflictError when the unique index reports that an
        active override for the same user and conflict group already exists.
        After that error the session must be rolled back.
        """
        if override.conflict_key is None:
            override.conflict_key = conflict_key(override.action_type)
        self.db.add(override)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"An active override conflicting with "
                f"{override.action_type.value} already exists for user "
                f"{override.target_user_id}"
            ) from e
        return override

    def transition(
        self,
        override_id: uuid.UUID,
        new_status: OverrideStatus,
        values: dict[str, Any],
        due_at: datetime | None = None,
    ) -> None:
        """
        Move an ACTIVE override to a terminal status.

        When due_at is given, the override must also have an expiry
        at or before it. Raises ConflictError if no row matched,
        meaning the override is no longer active (or not yet due).
        """
        stmt = (
            update(AdminOverride)
            .where(
                AdminOverride.id == override_id,
                AdminOverride.status == OverrideStatus.ACTIVE,
            )
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        if due_at is not None:
            stmt = stmt.where(
                AdminOverride.override_expires_at.is_not(None),
                AdminOverride.override_expires_at <= due_at,
            )

        result = self.db.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError(
                f"Override {override_id} is no longer active; it was "
                f"already reverted or expired"
            )

    def list_active(self) -> list[AdminOverride]:
        """All active overrides, newest first."""
        overrides = self.db.execute(
            select(AdminOverride)
            .where(AdminOverride.status == OverrideStatus.ACTIVE)
            .order_by(AdminOverride.created_at.desc())
        ).scalars().all()
        return list(overrides)

    def list_for_target(self, target_user_id: str) -> list[AdminOverride]:
        """Every override ever applied to one user, newest first."""
        overrides = self.db.execute(
            select(AdminOverride)
            .where(AdminOverride.target_user_id == target_user_id)
            .order_by(AdminOverride.created_at.desc())
        ).scalars().all()
        return list(overrides)

    def list_due_ids(self, now: datetime) -> list[uuid.UUID]:
        """Ids of active overrides whose expiry is at or before now."""
        ids = self.db.execute(
            select(AdminOverride.id)
            .where(
                AdminOverride.status == OverrideStatus.ACTIVE,
                AdminOverride.override_expires_at.is_not(None),
                AdminOverride.override_expires_at <= now,
            )
            .order_by(AdminOverride.override_expires_at)
        ).scalars().all()
        return list(ids)
