"""Pluggable handlers that read, correct and restore user state."""

from override_engine.handlers.actions import (
    ACTION_DEFINITIONS,
    ActionDefinition,
    ActionHandler,
    FieldOverrideHandler,
    conflict_key,
)
from override_engine.handlers.backend import (
    InMemoryUserStateBackend,
    UserStateBackend,
    UserStateUnavailable,
)
from override_engine.handlers.registry import (
    ActionHandlerRegistry,
    build_default_registry,
    get_registry,
)

__all__ = [
    "ACTION_DEFINITIONS",
    "ActionDefinition",
    "ActionHandler",
    "FieldOverrideHandler",
    "conflict_key",
    "InMemoryUserStateBackend",
    "UserStateBackend",
    "UserStateUnavailable",
    "ActionHandlerRegistry",
    "build_default_registry",
    "get_registry",
]
