"""
Override service — applies and reverts admin overrides.

Apply:
1. Validates the request (reason present, expiry in the future)
2. Rejects a second active override for the same user and action,
   or for an action that writes the same fields
3. Reserves the active slot in the store
4. Captures the user's current state, then applies the correction
5. Stores both snapshots on the override
6. Writes one audit entry

Revert and expire:
1. Loads the override and rejects it unless it is active
2. Moves it to its terminal status with a compare-and-set
3. Restores the captured state through the handler
4. Writes one audit entry

Nothing here commits. If a handler fails, the caller rolls back and
neither the override row nor its audit entry survive; a failed
revert leaves the override active, so a retry is safe.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from override_engine.config import get_settings
from override_engine.errors import ConflictError, NotFoundError, ValidationError
from override_engine.handlers.actions import ACTION_DEFINITIONS, CONFLICT_GROUP_LABELS
from override_engine.handlers.registry import ActionHandlerRegistry
from override_engine.models.base import utcnow
from override_engine.models.enums import (
    AuditEvent,
    OverrideActionType,
    OverrideStatus,
)
from override_engine.models.override import AdminOverride
from override_engine.schemas.override import (
    OverrideApplyRequest,
    OverrideRevertRequest,
)
from override_engine.services.audit_logger import AuditLogger
from override_engine.services.override_store import OverrideStore

logger = logging.getLogger("override_engine.overrides")

EXPIRY_REASON = "Automatically expired"


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _conflict_subject(
    existing: AdminOverride, requested: OverrideActionType
) -> str:
    definition = ACTION_DEFINITIONS[requested]
    if definition.conflict_group:
        group = CONFLICT_GROUP_LABELS.get(
            definition.conflict_group, definition.conflict_group
        )
        return f"affecting {group} ({existing.action_type.value})"
    return f"of type {requested.value}"


class OverrideService:

    def __init__(
        self,
        db: Session,
        registry: ActionHandlerRegistry,
        clock: Callable[[], datetime] = utcnow,
        system_actor_id: str | None = None,
    ):
        self.db = db
        self.registry = registry
        self.clock = clock
        self.system_actor_id = system_actor_id or get_settings().SYSTEM_ACTOR_ID
        self.store = OverrideStore(db)
        self.audit = AuditLogger(db)

    def apply(self, request: OverrideApplyRequest, actor: str) -> AdminOverride:
        """
        Apply an override to a user.

        Raises ValidationError, ConflictError or HandlerError. On any
        of them nothing has been written that the caller should keep.
        """
        now = self.clock()
        reason = (request.override_reason or "").strip()
        target_user_id = (request.target_user_id or "").strip()

        if not reason:
            raise ValidationError("An override reason is required")
        if not target_user_id:
            raise ValidationError("A target user id is required")
        if not actor or not actor.strip():
            raise ValidationError("The acting admin must be identified")
        if (
            request.override_expires_at is not None
            and request.override_expires_at <= now
        ):
            raise ValidationError(
                "overrideExpiresAt must be in the future "
                f"(got {request.override_expires_at.isoformat()}, "
                f"now {now.isoformat()})"
            )

        existing = self.store.find_active(target_user_id, request.action_type)
        if existing:
            subject = _conflict_subject(existing, request.action_type)
            raise ConflictError(
                f"An active override {subject} "
                f"already exists for user {target_user_id} "
                f"(override {existing.id}); revert it or wait for it to "
                f"expire before applying another"
            )

        override = self.store.reserve(AdminOverride(
            id=uuid.uuid4(),
            target_user_id=target_user_id,
            admin_actor_id=actor,
            action_type=request.action_type,
            override_reason=reason,
            status=OverrideStatus.ACTIVE,
            override_expires_at=request.override_expires_at,
            created_at=now,
        ))

        previous_state = self.registry.capture(request.action_type, target_user_id)
        new_state = self.registry.apply(
            request.action_type, target_user_id, previous_state
        )

        override.previous_state = previous_state
        override.new_state = new_state

        self.audit.record(
            override_id=override.id,
            admin_actor_id=actor,
            affected_user_id=target_user_id,
            action_type=request.action_type,
            override_reason=reason,
            previous_state=previous_state,
            new_state=new_state,
            metadata={
                "event": AuditEvent.APPLIED.value,
                "status": OverrideStatus.ACTIVE.value,
                "overrideExpiresAt": _isoformat(request.override_expires_at),
            },
            created_at=now,
        )
        self.db.flush()

        logger.info(
            "Applied override %s (%s) to user %s by %s, expires %s",
            override.id, request.action_type.value, target_user_id, actor,
            _isoformat(request.override_expires_at) or "never",
        )
        return override

    def revert(
        self,
        override_id: uuid.UUID,
        request: OverrideRevertRequest,
        actor: str,
    ) -> AdminOverride:
        """
        Revert an active override and restore the user's prior state.

        Reverting is not idempotent: an override that is already
        reverted or expired raises ConflictError and no handler runs.
        A missing or closed override is reported before a missing reason.
        """
        override = self._load_active(override_id)

        reason = (request.reason or "").strip()
        if not reason:
            raise ValidationError("A revert reason is required")
        if not actor or not actor.strip():
            raise ValidationError("The acting admin must be identified")

        now = self.clock()

        return self._close(
            override,
            new_status=OverrideStatus.REVERTED,
            event=AuditEvent.REVERTED,
            actor=actor,
            reason=reason,
            now=now,
            values={
                "reverted_at": now,
                "reverted_by": actor,
                "revert_reason": reason,
            },
        )

    def expire(
        self, override_id: uuid.UUID, now: datetime | None = None
    ) -> AdminOverride:
        """
        Expire an override whose expiry time has passed.

        Driven by the ExpiryScheduler. Attributed to the system actor.
        An override that is not yet due raises ConflictError, so an
        override never lapses before its expiry time.
        """
        now = now or self.clock()
        override = self._load_active(override_id)

        if override.override_expires_at is None:
            raise ConflictError(f"Override {override_id} has no expiry")
        if override.override_expires_at > now:
            raise ConflictError(
                f"Override {override_id} is not due to expire until "
                f"{override.override_expires_at.isoformat()}"
            )

        return self._close(
            override,
            new_status=OverrideStatus.EXPIRED,
            event=AuditEvent.EXPIRED,
            actor=self.system_actor_id,
            reason=EXPIRY_REASON,
            now=now,
            values={"expired_at": now},
            due_at=now,
        )

    def _load_active(self, override_id: uuid.UUID) -> AdminOverride:
        override = self.store.get(override_id)
        if not override:
            raise NotFoundError(f"Override {override_id} not found")
        if not override.is_active:
            raise ConflictError(
                f"Override {override_id} is already {override.status.value}; "
                f"only active overrides can be reverted or expired"
            )
        return override

    def _close(
        self,
        override: AdminOverride,
        new_status: OverrideStatus,
        event: AuditEvent,
        actor: str,
        reason: str,
        now: datetime,
        values: dict,
        due_at: datetime | None = None,
    ) -> AdminOverride:
        """Compare-and-set to a terminal status, then restore the user."""
        if not override.can_transition_to(new_status):
            raise ConflictError(
                f"Cannot transition override {override.id} from "
                f"{override.status.value} to {new_status.value}"
            )

        action_type = override.action_type
        target_user_id = override.target_user_id
        captured_state = override.previous_state
        state_before_restore = override.new_state

        # Losing a race raises here, before any handler runs
        self.store.transition(override.id, new_status, values, due_at=due_at)

        restored_state = self.registry.restore(
            action_type, target_user_id, captured_state
        )

        self.db.refresh(override)
        self.audit.record(
            override_id=override.id,
            admin_actor_id=actor,
            affected_user_id=target_user_id,
            action_type=action_type,
            override_reason=reason,
            previous_state=state_before_restore,
            new_state=restored_state,
            metadata={
                "event": event.value,
                "status": new_status.value,
                "originalReason": override.override_reason,
                "appliedBy": override.admin_actor_id,
            },
            created_at=now,
        )
        self.db.flush()

        logger.info(
            "Override %s (%s) for user %s %s by %s",
            override.id, action_type.value, target_user_id,
            new_status.value, actor,
        )
        return override
