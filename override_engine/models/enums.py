"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An unknown action type is
rejected at the API boundary and again by the database.
"""

import enum


class OverrideActionType(str, enum.Enum):
    """The closed set of corrections an operator can apply."""
    FORCE_LOGOUT = "FORCE_LOGOUT"
    RESET_SESSION = "RESET_SESSION"
    RESTORE_AUTO_LOGIN = "RESTORE_AUTO_LOGIN"
    ENABLE_DRIVER_ONLINE = "ENABLE_DRIVER_ONLINE"
    DISABLE_DRIVER_ONLINE = "DISABLE_DRIVER_ONLINE"
    CLEAR_CANCELLATION_FLAGS = "CLEAR_CANCELLATION_FLAGS"
    RESTORE_DRIVER_ACCESS = "RESTORE_DRIVER_ACCESS"
    CLEAR_RIDER_CANCELLATION_WARNING = "CLEAR_RIDER_CANCELLATION_WARNING"
    RESTORE_RIDE_ACCESS = "RESTORE_RIDE_ACCESS"


class OverrideStatus(str, enum.Enum):
    """Lifecycle of an override. Only ACTIVE has outgoing transitions."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVERTED = "reverted"


class AuditEvent(str, enum.Enum):
    """Kind of transition an audit entry records."""
    APPLIED = "applied"
    REVERTED = "reverted"
    EXPIRED = "expired"
