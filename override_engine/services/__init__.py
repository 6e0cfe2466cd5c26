"""Business logic services."""

from override_engine.services.audit_logger import AuditLogger
from override_engine.services.override_store import OverrideStore
from override_engine.services.override_service import OverrideService
from override_engine.services.query_service import QueryService
from override_engine.services.expiry_scheduler import ExpiryScheduler, SweepResult

__all__ = [
    "AuditLogger",
    "OverrideStore",
    "OverrideService",
    "QueryService",
    "ExpiryScheduler",
    "SweepResult",
]
