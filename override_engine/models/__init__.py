"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from override_engine.models.base import Base
from override_engine.models.enums import (
    OverrideActionType,
    OverrideStatus,
    AuditEvent,
)
from override_engine.models.override import AdminOverride
from override_engine.models.audit_log import OverrideAuditLog

__all__ = [
    "Base",
    "OverrideActionType",
    "OverrideStatus",
    "AuditEvent",
    "AdminOverride",
    "OverrideAuditLog",
]
