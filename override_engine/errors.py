"""
Typed errors raised by the override engine.

Services raise these and never translate them. The API layer maps
each kind to an HTTP status; the expiry sweep is the only caller
that recovers from them, one override at a time.
"""


class OverrideError(Exception):
    """Base class for every error the engine raises on purpose."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OverrideError):
    """Malformed or missing input: empty reason, past expiry."""

    status_code = 400


class NotFoundError(OverrideError):
    """The requested override does not exist."""

    status_code = 404


class ConflictError(OverrideError):
    """
    An invariant would be violated.

    Raised for a duplicate active override, a revert on an override
    that is already expired or reverted, and for the loser of a
    revert/expire race. Never retried automatically.
    """

    status_code = 409


class HandlerError(OverrideError):
    """The external system behind an action handler failed or timed out."""

    status_code = 502
