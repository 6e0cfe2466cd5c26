"""
Tests for action handlers and the handler registry.
"""

import threading

import pytest

from override_engine.errors import HandlerError
from override_engine.handlers.actions import (
    ACTION_DEFINITIONS,
    ActionHandler,
    FieldOverrideHandler,
)
from override_engine.handlers.backend import (
    InMemoryUserStateBackend,
    UserStateUnavailable,
)
from override_engine.handlers.registry import (
    ActionHandlerRegistry,
    build_default_registry,
)
from override_engine.models.enums import OverrideActionType


class UnreachableBackend(InMemoryUserStateBackend):
    def write(self, user_id, values):
        raise UserStateUnavailable("session store unreachable")


class LostAckBackend(InMemoryUserStateBackend):
    """Writes land, but the next `failures` of them report an error."""

    def __init__(self):
        super().__init__()
        self.failures = 0

    def write(self, user_id, values):
        super().write(user_id, values)
        if self.failures:
            self.failures -= 1
            raise UserStateUnavailable("acknowledgement lost")


class TestFieldOverrideHandler:

    def test_capture_does_not_mutate(self, backend):
        backend.seed("u1", active_sessions=["s1", "s2"])
        handler = FieldOverrideHandler(backend, {"active_sessions": []})

        captured = handler.capture("u1")

        assert captured == {"active_sessions": ["s1", "s2"]}
        assert backend.snapshot("u1")["active_sessions"] == ["s1", "s2"]

    def test_apply_returns_new_state(self, backend):
        backend.seed("u1", active_sessions=["s1"])
        handler = FieldOverrideHandler(backend, {"active_sessions": []})

        assert handler.apply("u1") == {"active_sessions": []}
        assert backend.snapshot("u1")["active_sessions"] == []

    def test_apply_is_idempotent(self, backend):
        backend.seed("u1", driver_cancellation_flags=4, driver_acceptance_flags=2)
        handler = FieldOverrideHandler(backend, {
            "driver_cancellation_flags": 0,
            "driver_acceptance_flags": 0,
        })

        first = handler.apply("u1")
        second = handler.apply("u1")

        assert first == second
        assert backend.snapshot("u1")["driver_cancellation_flags"] == 0

    def test_restore_round_trip(self, backend):
        backend.seed("u1", driver_online_allowed=False)
        handler = FieldOverrideHandler(backend, {"driver_online_allowed": True})
        before = backend.snapshot("u1")

        captured = handler.capture("u1")
        handler.apply("u1")
        handler.restore("u1", captured)

        assert backend.snapshot("u1") == before

    def test_restore_twice_is_idempotent(self, backend):
        backend.seed("u1", rider_cancellation_warning=True)
        handler = FieldOverrideHandler(backend, {"rider_cancellation_warning": False})
        captured = handler.capture("u1")
        handler.apply("u1")

        first = handler.restore("u1", captured)
        second = handler.restore("u1", captured)

        assert first == second == {"rider_cancellation_warning": True}

    def test_restore_only_touches_its_fields(self, backend):
        backend.seed("u1", ride_access_restricted=True, auto_login_eligible=False)
        handler = FieldOverrideHandler(backend, {"ride_access_restricted": False})
        captured = handler.capture("u1")
        handler.apply("u1")

        backend.write("u1", {"auto_login_eligible": True})
        handler.restore("u1", captured)

        state = backend.snapshot("u1")
        assert state["ride_access_restricted"] is True
        assert state["auto_login_eligible"] is True

    def test_restore_without_snapshot_rejected(self, backend):
        handler = FieldOverrideHandler(backend, {"session_status": "fresh"})
        with pytest.raises(ValueError, match="No captured state"):
            handler.restore("u1", None)

    def test_empty_field_set_rejected(self, backend):
        with pytest.raises(ValueError):
            FieldOverrideHandler(backend, {})


class TestRegistry:

    def test_default_registry_covers_every_action(self, backend):
        registry = build_default_registry(backend)
        for action_type in OverrideActionType:
            assert isinstance(registry.get(action_type), ActionHandler)

    def test_every_action_has_a_definition(self):
        assert set(ACTION_DEFINITIONS) == set(OverrideActionType)

    def test_missing_handler_rejected_at_startup(self, backend):
        handlers = {
            OverrideActionType.FORCE_LOGOUT: FieldOverrideHandler(
                backend, {"active_sessions": []}
            ),
        }
        with pytest.raises(ValueError, match="No handler registered"):
            ActionHandlerRegistry(handlers)

    def test_force_logout_ends_sessions(self, backend):
        backend.seed("u1", active_sessions=["web", "ios"])
        registry = build_default_registry(backend)

        before = registry.capture(OverrideActionType.FORCE_LOGOUT, "u1")
        after = registry.apply(OverrideActionType.FORCE_LOGOUT, "u1")

        assert before == {"active_sessions": ["web", "ios"]}
        assert after == {"active_sessions": []}

    def test_enable_and_disable_driver_online_share_a_field(self, backend):
        registry = build_default_registry(backend)

        registry.apply(OverrideActionType.DISABLE_DRIVER_ONLINE, "d1")
        assert backend.snapshot("d1")["driver_online_allowed"] is False

        registry.apply(OverrideActionType.ENABLE_DRIVER_ONLINE, "d1")
        assert backend.snapshot("d1")["driver_online_allowed"] is True

    def test_backend_failure_becomes_handler_error(self):
        registry = build_default_registry(UnreachableBackend())
        with pytest.raises(HandlerError, match="session store unreachable"):
            registry.apply(OverrideActionType.FORCE_LOGOUT, "u1")

    def test_slow_handler_times_out(self, backend):
        release = threading.Event()

        class StuckHandler(FieldOverrideHandler):
            def apply(self, target_user_id):
                release.wait(2)
                return super().apply(target_user_id)

        handlers = {
            action_type: StuckHandler(backend, definition.corrected_values)
            for action_type, definition in ACTION_DEFINITIONS.items()
        }
        registry = ActionHandlerRegistry(handlers, timeout_seconds=0.05)
        try:
            with pytest.raises(HandlerError, match="did not respond"):
                registry.apply(OverrideActionType.RESET_SESSION, "u1")
        finally:
            release.set()
            registry.shutdown()


class TestUndoOnFailure:

    def test_failed_apply_restores_captured_state(self):
        backend = LostAckBackend()
        backend.seed("u1", active_sessions=["web"])
        registry = build_default_registry(backend)
        captured = registry.capture(OverrideActionType.FORCE_LOGOUT, "u1")

        backend.failures = 1
        with pytest.raises(HandlerError, match="acknowledgement lost"):
            registry.apply(OverrideActionType.FORCE_LOGOUT, "u1", captured)

        assert backend.snapshot("u1")["active_sessions"] == ["web"]

    def test_failed_restore_reapplies_correction(self):
        backend = LostAckBackend()
        backend.seed("u1", active_sessions=["web"])
        registry = build_default_registry(backend)
        captured = registry.capture(OverrideActionType.FORCE_LOGOUT, "u1")
        registry.apply(OverrideActionType.FORCE_LOGOUT, "u1", captured)

        backend.failures = 1
        with pytest.raises(HandlerError, match="acknowledgement lost"):
            registry.restore(OverrideActionType.FORCE_LOGOUT, "u1", captured)

        assert backend.snapshot("u1")["active_sessions"] == []

    def test_apply_without_snapshot_is_not_undone(self):
        backend = LostAckBackend()
        backend.seed("u1", active_sessions=["web"])
        registry = build_default_registry(backend)

        backend.failures = 1
        with pytest.raises(HandlerError):
            registry.apply(OverrideActionType.FORCE_LOGOUT, "u1")

        assert backend.snapshot("u1")["active_sessions"] == []

    def test_timed_out_call_that_never_started_is_cancelled(self, backend):
        release = threading.Event()

        class StuckHandler(FieldOverrideHandler):
            def apply(self, target_user_id):
                release.wait(2)
                return super().apply(target_user_id)

        handlers = {
            action_type: StuckHandler(backend, definition.corrected_values)
            for action_type, definition in ACTION_DEFINITIONS.items()
        }
        backend.seed("u1", session_status="stuck")
        backend.seed("u2", session_status="stuck")
        registry = ActionHandlerRegistry(handlers, timeout_seconds=0.2, max_workers=1)
        try:
            with pytest.raises(HandlerError):
                registry.apply(OverrideActionType.RESET_SESSION, "u1")
            # Queued behind the stuck call, so it times out before starting
            with pytest.raises(HandlerError):
                registry.apply(OverrideActionType.RESET_SESSION, "u2")
        finally:
            release.set()
            registry.shutdown(wait=True)

        assert backend.snapshot("u2")["session_status"] == "stuck"
