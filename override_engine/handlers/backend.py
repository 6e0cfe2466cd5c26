"""
Access to user state owned by other parts of the platform.

The engine never stores session lists, driver flags or cancellation
counters itself. Handlers read and write them through a
UserStateBackend. Production deployments plug in a backend that
talks to the owning services; the in-memory backend below is used
for local runs and tests.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable


class UserStateUnavailable(Exception):
    """The system that owns the user's state could not be reached."""


class UserStateBackend(ABC):

    @abstractmethod
    def read(self, user_id: str, fields: Iterable[str]) -> dict[str, Any]:
        """Return the current value of each requested field."""

    @abstractmethod
    def write(self, user_id: str, values: dict[str, Any]) -> None:
        """Set each field in values. Writing the current value is a no-op."""


# What a user looks like before anyone has corrected anything
DEFAULT_USER_STATE: dict[str, Any] = {
    "active_sessions": [],
    "session_status": "fresh",
    "auto_login_eligible": True,
    "driver_online_allowed": True,
    "driver_cancellation_flags": 0,
    "driver_acceptance_flags": 0,
    "driver_access_restricted": False,
    "rider_cancellation_warning": False,
    "ride_access_restricted": False,
}


class InMemoryUserStateBackend(UserStateBackend):
    """Process-local user state, guarded by a lock."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None):
        self._lock = threading.Lock()
        self._users: dict[str, dict[str, Any]] = {}
        for user_id, values in (initial or {}).items():
            self.seed(user_id, **values)

    def seed(self, user_id: str, **values: Any) -> None:
        """Set up a user's state directly, bypassing any handler."""
        with self._lock:
            state = self._users.setdefault(user_id, copy.deepcopy(DEFAULT_USER_STATE))
            state.update(copy.deepcopy(values))

    def snapshot(self, user_id: str) -> dict[str, Any]:
        with self._lock:
            state = self._users.get(user_id, DEFAULT_USER_STATE)
            return copy.deepcopy(state)

    def read(self, user_id: str, fields: Iterable[str]) -> dict[str, Any]:
        with self._lock:
            state = self._users.get(user_id, DEFAULT_USER_STATE)
            return {name: copy.deepcopy(state.get(name)) for name in fields}

    def write(self, user_id: str, values: dict[str, Any]) -> None:
        with self._lock:
            state = self._users.setdefault(user_id, copy.deepcopy(DEFAULT_USER_STATE))
            state.update(copy.deepcopy(values))
