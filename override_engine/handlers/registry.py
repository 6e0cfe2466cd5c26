"""
Action handler registry.

Maps every OverrideActionType to exactly one handler. The registry
is built once at startup and refuses to start with a gap, so the
services never branch on action type themselves.

Every handler call goes through the registry, which bounds it with
a timeout and turns any failure into a HandlerError. A stuck
external system therefore fails one request instead of wedging the
override pipeline.

A call that fails or times out may still have changed user state,
and a timed-out call keeps running after the caller has given up and
rolled back. Such calls are undone: a failed apply is followed by a
restore of the captured snapshot, and a failed restore by a fresh
apply, since the override it belongs to stays active. For a timed-out
call the undo runs once the late call finishes, so it always lands
last.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from functools import lru_cache, partial
from typing import Any, Callable

from override_engine.config import get_settings
from override_engine.errors import HandlerError
from override_engine.handlers.actions import (
    ACTION_DEFINITIONS,
    ActionHandler,
    FieldOverrideHandler,
)
from override_engine.handlers.backend import (
    InMemoryUserStateBackend,
    UserStateBackend,
)
from override_engine.models.enums import OverrideActionType

logger = logging.getLogger("override_engine.handlers")


class ActionHandlerRegistry:

    def __init__(
        self,
        handlers: dict[OverrideActionType, ActionHandler],
        timeout_seconds: float | None = None,
        max_workers: int = 8,
    ):
        missing = set(OverrideActionType) - set(handlers)
        if missing:
            names = ", ".join(sorted(m.value for m in missing))
            raise ValueError(f"No handler registered for: {names}")

        self._handlers = dict(handlers)
        self.timeout_seconds = timeout_seconds
        self._executor = None
        if timeout_seconds and timeout_seconds > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="override-handler",
            )

    def get(self, action_type: OverrideActionType) -> ActionHandler:
        return self._handlers[OverrideActionType(action_type)]

    def capture(self, action_type: OverrideActionType, target_user_id: str) -> dict:
        handler = self.get(action_type)
        return self._call(action_type, "capture", handler.capture, target_user_id)

    def apply(
        self,
        action_type: OverrideActionType,
        target_user_id: str,
        previous_state: dict | None = None,
    ) -> dict:
        """
        Apply the correction. When previous_state is given, a failed or
        timed-out apply is undone by restoring it.
        """
        handler = self.get(action_type)
        undo = None
        if previous_state is not None:
            undo = partial(handler.restore, target_user_id, previous_state)
        return self._call(
            action_type, "apply", handler.apply, target_user_id, undo=undo
        )

    def restore(
        self,
        action_type: OverrideActionType,
        target_user_id: str,
        previous_state: dict | None,
    ) -> dict:
        """Put previous_state back; a failed restore re-applies the correction."""
        handler = self.get(action_type)
        return self._call(
            action_type, "restore", handler.restore, target_user_id, previous_state,
            undo=partial(handler.apply, target_user_id),
        )

    def _call(
        self,
        action_type: OverrideActionType,
        operation: str,
        fn: Callable[..., Any],
        *args: Any,
        undo: Callable[[], Any] | None = None,
    ) -> dict:
        """Run one handler operation, bounded by the configured timeout."""
        label = f"{OverrideActionType(action_type).value}.{operation}"
        target_user_id = args[0]
        try:
            if self._executor is None:
                return fn(*args)
            future = self._executor.submit(fn, *args)
            return future.result(timeout=self.timeout_seconds)
        except HandlerError:
            raise
        except FutureTimeout as e:
            logger.error(
                "Handler %s timed out after %ss for user %s",
                label, self.timeout_seconds, target_user_id,
            )
            self._undo_when_done(future, label, target_user_id, undo)
            raise HandlerError(
                f"Handler {label} did not respond within "
                f"{self.timeout_seconds} seconds"
            ) from e
        except Exception as e:
            logger.error("Handler %s failed for user %s: %s", label, target_user_id, e)
            self._undo(label, target_user_id, undo)
            raise HandlerError(f"Handler {label} failed: {e}") from e

    def _undo_when_done(
        self,
        future: Future,
        label: str,
        target_user_id: str,
        undo: Callable[[], Any] | None,
    ) -> None:
        if future.cancel():
            # Never started, so there is nothing to undo
            return
        if undo is None:
            return
        # Runs right away if the call finished in the meantime
        future.add_done_callback(
            lambda _: self._undo(label, target_user_id, undo)
        )

    def _undo(
        self,
        label: str,
        target_user_id: str,
        undo: Callable[[], Any] | None,
    ) -> None:
        if undo is None:
            return
        try:
            undo()
        except Exception:
            logger.exception(
                "Could not undo %s for user %s; their state needs manual review",
                label, target_user_id,
            )
        else:
            logger.warning("Undid %s for user %s", label, target_user_id)

    def shutdown(self, wait: bool = False) -> None:
        """Stop the pool; wait=True blocks until late calls and their undo finish."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def build_default_registry(
    backend: UserStateBackend,
    timeout_seconds: float | None = None,
) -> ActionHandlerRegistry:
    """One FieldOverrideHandler per action, all sharing one backend."""
    handlers = {
        action_type: FieldOverrideHandler(backend, definition.corrected_values)
        for action_type, definition in ACTION_DEFINITIONS.items()
    }
    return ActionHandlerRegistry(handlers, timeout_seconds=timeout_seconds)


@lru_cache()
def get_registry() -> ActionHandlerRegistry:
    """
    Return the process-wide registry.

    Also used as a FastAPI dependency, so tests can swap in a
    registry backed by their own user state.
    """
    settings = get_settings()
    return build_default_registry(
        InMemoryUserStateBackend(),
        timeout_seconds=settings.HANDLER_TIMEOUT_SECONDS,
    )
