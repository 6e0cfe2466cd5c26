"""
Action handlers — one per override action type.

A handler knows which slice of a user's platform state its action
touches. It can read that slice without changing it (capture), force
it to the corrected value (apply), and put a captured snapshot back
(restore). All three are idempotent: applying twice or restoring the
same snapshot twice leaves the state exactly as one call would.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from override_engine.handlers.backend import UserStateBackend
from override_engine.models.enums import OverrideActionType


class ActionHandler(ABC):
    """Capture / apply / restore for one unit of external state."""

    @abstractmethod
    def capture(self, target_user_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    def apply(self, target_user_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    def restore(
        self, target_user_id: str, previous_state: dict[str, Any]
    ) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class ActionDefinition:
    """
    What an action does to a user, and how operators see it.

    Actions that write the same fields share a conflict_group. Only one
    override per group can be active for a user at a time, otherwise
    reverting them in the wrong order would restore a snapshot taken
    while the other correction was in force.
    """
    label: str
    description: str
    corrected_values: dict[str, Any] = field(default_factory=dict)
    conflict_group: str | None = None


class FieldOverrideHandler(ActionHandler):
    """
    Handler for actions that pin a fixed set of fields to fixed values.

    The snapshot it captures holds exactly the fields it corrects,
    so restore never touches anything the action did not change.
    """

    def __init__(self, backend: UserStateBackend, corrected_values: dict[str, Any]):
        if not corrected_values:
            raise ValueError("corrected_values must name at least one field")
        self.backend = backend
        self.corrected_values = dict(corrected_values)

    @property
    def fields(self) -> list[str]:
        return sorted(self.corrected_values)

    def capture(self, target_user_id: str) -> dict[str, Any]:
        return self.backend.read(target_user_id, self.fields)

    def apply(self, target_user_id: str) -> dict[str, Any]:
        self.backend.write(target_user_id, self.corrected_values)
        return self.backend.read(target_user_id, self.fields)

    def restore(
        self, target_user_id: str, previous_state: dict[str, Any]
    ) -> dict[str, Any]:
        if previous_state is None:
            raise ValueError(
                f"No captured state to restore for user {target_user_id}"
            )
        values = {
            name: previous_state[name]
            for name in self.fields
            if name in previous_state
        }
        self.backend.write(target_user_id, values)
        return self.backend.read(target_user_id, self.fields)


DRIVER_ONLINE_GROUP = "driver_online"

# What a shared group is called in conflict messages
CONFLICT_GROUP_LABELS = {
    DRIVER_ONLINE_GROUP: "driver online status",
}


# Labels and descriptions are what the admin panel shows next to each action.
ACTION_DEFINITIONS: dict[OverrideActionType, ActionDefinition] = {
    OverrideActionType.FORCE_LOGOUT: ActionDefinition(
        label="Force Logout",
        description="End all active sessions for this user",
        corrected_values={"active_sessions": []},
    ),
    OverrideActionType.RESET_SESSION: ActionDefinition(
        label="Reset Session",
        description="Reset a stuck or corrupted session",
        corrected_values={"session_status": "fresh"},
    ),
    OverrideActionType.RESTORE_AUTO_LOGIN: ActionDefinition(
        label="Restore Auto-Login",
        description="Restore auto-login eligibility",
        corrected_values={"auto_login_eligible": True},
    ),
    OverrideActionType.ENABLE_DRIVER_ONLINE: ActionDefinition(
        label="Enable Driver Online",
        description="Temporarily enable driver online status",
        corrected_values={"driver_online_allowed": True},
        conflict_group=DRIVER_ONLINE_GROUP,
    ),
    OverrideActionType.DISABLE_DRIVER_ONLINE: ActionDefinition(
        label="Disable Driver Online",
        description="Temporarily disable driver online status",
        corrected_values={"driver_online_allowed": False},
        conflict_group=DRIVER_ONLINE_GROUP,
    ),
    OverrideActionType.CLEAR_CANCELLATION_FLAGS: ActionDefinition(
        label="Clear Cancellation Flags",
        description="Clear incorrect cancellation or acceptance flags",
        corrected_values={
            "driver_cancellation_flags": 0,
            "driver_acceptance_flags": 0,
        },
    ),
    OverrideActionType.RESTORE_DRIVER_ACCESS: ActionDefinition(
        label="Restore Driver Access",
        description="Restore access after dispute resolution",
        corrected_values={"driver_access_restricted": False},
    ),
    OverrideActionType.CLEAR_RIDER_CANCELLATION_WARNING: ActionDefinition(
        label="Clear Rider Cancel Warning",
        description="Remove false cancellation warnings",
        corrected_values={"rider_cancellation_warning": False},
    ),
    OverrideActionType.RESTORE_RIDE_ACCESS: ActionDefinition(
        label="Restore Ride Access",
        description="Restore ride access after dispute review",
        corrected_values={"ride_access_restricted": False},
    ),
}


def conflict_key(action_type: OverrideActionType) -> str:
    """
    The key the one-active-override rule is enforced on.

    Grouped actions share their group's key; every other action is
    its own group.
    """
    action_type = OverrideActionType(action_type)
    group = ACTION_DEFINITIONS[action_type].conflict_group
    return group or action_type.value
