"""
Override API endpoints.

The API layer is thin. It handles HTTP concerns (status codes,
the acting admin header, committing or rolling back) and delegates
all business logic to OverrideService and QueryService.

Each engine error maps to one status code: validation 400,
not found 404, conflict 409, handler failure 502.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from override_engine.errors import OverrideError
from override_engine.handlers.actions import ACTION_DEFINITIONS
from override_engine.handlers.registry import ActionHandlerRegistry, get_registry
from override_engine.models.base import get_db
from override_engine.schemas.override import (
    ActionTypeResponse,
    AuditLogEntryResponse,
    AuditLogFilter,
    OverrideApplyRequest,
    OverrideResponse,
    OverrideRevertRequest,
)
from override_engine.services.override_service import OverrideService
from override_engine.services.query_service import QueryService

router = APIRouter(prefix="/overrides", tags=["Overrides"])


def get_actor(x_admin_actor_id: str = Header(min_length=1, max_length=100)) -> str:
    """The operator id, already verified by the access-control layer."""
    return x_admin_actor_id


def _http_error(e: OverrideError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=OverrideResponse)
def apply_override(
    request: OverrideApplyRequest,
    actor: str = Depends(get_actor),
    db: Session = Depends(get_db),
    registry: ActionHandlerRegistry = Depends(get_registry),
):
    """
    Apply an override to a user.

    The override and its audit entry are committed together.
    If the handler fails, neither is written.
    """
    service = OverrideService(db, registry)
    try:
        override = service.apply(request, actor)
        db.commit()
        return override
    except OverrideError as e:
        db.rollback()
        raise _http_error(e)


@router.get("/active", response_model=list[OverrideResponse])
def list_active_overrides(db: Session = Depends(get_db)):
    """All active overrides, newest first."""
    return QueryService(db).list_active()


@router.get("/audit-log", response_model=list[AuditLogEntryResponse])
def list_audit_log(
    actor_id: str | None = Query(default=None, alias="actorId"),
    target_user_id: str | None = Query(default=None, alias="targetUserId"),
    override_id: uuid.UUID | None = Query(default=None, alias="overrideId"),
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = 500,
    db: Session = Depends(get_db),
):
    """Audit entries in chronological order, optionally filtered."""
    try:
        filters = AuditLogFilter(
            actor_id=actor_id,
            target_user_id=target_user_id,
            override_id=override_id,
            since=since,
            until=until,
            limit=limit,
        )
        return QueryService(db).list_audit_log(filters)
    except OverrideError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/action-types", response_model=list[ActionTypeResponse])
def list_action_types():
    """The closed set of override actions, with operator-facing labels."""
    return [
        ActionTypeResponse(
            value=action_type,
            label=definition.label,
            description=definition.description,
            conflict_group=definition.conflict_group,
        )
        for action_type, definition in ACTION_DEFINITIONS.items()
    ]


@router.get("/user/{target_user_id}", response_model=list[OverrideResponse])
def list_overrides_for_user(
    target_user_id: str,
    db: Session = Depends(get_db),
):
    """Full override history for one user, newest first."""
    return QueryService(db).list_for_target(target_user_id)


@router.get("/{override_id}", response_model=OverrideResponse)
def get_override(
    override_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    try:
        return QueryService(db).get_override(override_id)
    except OverrideError as e:
        raise _http_error(e)


@router.post("/{override_id}/revert", response_model=OverrideResponse)
def revert_override(
    override_id: uuid.UUID,
    request: OverrideRevertRequest,
    actor: str = Depends(get_actor),
    db: Session = Depends(get_db),
    registry: ActionHandlerRegistry = Depends(get_registry),
):
    """
    Revert an active override and restore the user's prior state.

    Reverting an override that already expired or was reverted
    returns 409. If the handler fails, the override stays active.
    """
    service = OverrideService(db, registry)
    try:
        override = service.revert(override_id, request, actor)
        db.commit()
        return override
    except OverrideError as e:
        db.rollback()
        raise _http_error(e)
