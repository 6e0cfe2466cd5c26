"""
Expiry scheduler — lapses overrides once their expiry time passes.

A sweep finds every active override whose expiry is at or before
now and expires each one in its own session and transaction. One
override failing (its handler is down, or an operator reverted it
a moment earlier) is logged and skipped; the rest of the sweep goes
on. A crash mid-sweep loses nothing: whatever was not committed is
still active and due, and the next sweep picks it up.

If a handler keeps failing to restore, the override stays active
and every sweep logs an error for it until the handler recovers or
an operator steps in.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import sessionmaker

from override_engine.config import get_settings
from override_engine.errors import ConflictError, HandlerError
from override_engine.handlers.registry import ActionHandlerRegistry, get_registry
from override_engine.models.base import SessionLocal, utcnow
from override_engine.services.override_service import OverrideService
from override_engine.services.override_store import OverrideStore

logger = logging.getLogger("override_engine.expiry")


@dataclass
class SweepResult:
    expired: list[uuid.UUID] = field(default_factory=list)
    conflicts: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.expired) + len(self.conflicts) + len(self.failed)


class ExpiryScheduler:

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        registry: ActionHandlerRegistry | None = None,
        interval_seconds: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.registry = registry or get_registry()
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.EXPIRY_SWEEP_INTERVAL_SECONDS
        )
        self.clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep(self, now: datetime | None = None) -> SweepResult:
        """Expire every override that is due at `now`."""
        now = now or self.clock()
        result = SweepResult()

        with self.session_factory() as db:
            due_ids = OverrideStore(db).list_due_ids(now)

        if not due_ids:
            return result

        logger.info("Expiry sweep found %d due override(s)", len(due_ids))
        for override_id in due_ids:
            self._expire_one(override_id, now, result)

        logger.info(
            "Expiry sweep done: %d expired, %d conflicts, %d failed",
            len(result.expired), len(result.conflicts), len(result.failed),
        )
        return result

    def _expire_one(
        self, override_id: uuid.UUID, now: datetime, result: SweepResult
    ) -> None:
        db = self.session_factory()
        try:
            service = OverrideService(db, self.registry, clock=self.clock)
            service.expire(override_id, now=now)
            db.commit()
            result.expired.append(override_id)
        except ConflictError as e:
            # Reverted by an operator between listing and expiring
            db.rollback()
            logger.info("Skipped expiry of override %s: %s", override_id, e)
            result.conflicts.append(override_id)
        except HandlerError as e:
            db.rollback()
            logger.error(
                "Could not restore state for override %s, it stays active "
                "and will be retried next sweep: %s",
                override_id, e,
            )
            result.failed.append(override_id)
        except Exception:
            db.rollback()
            logger.exception("Unexpected error expiring override %s", override_id)
            result.failed.append(override_id)
        finally:
            db.close()

    def start(self) -> None:
        """Start sweeping on a background thread. A second call is a no-op."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="override-expiry", daemon=True
        )
        self._thread.start()
        logger.info(
            "Expiry scheduler started, sweeping every %ss", self.interval_seconds
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        if not self._thread:
            return
        self._stop.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("Expiry scheduler stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep()
            except Exception:
                # The next tick retries; the thread must not die
                logger.exception("Expiry sweep failed")
            self._stop.wait(self.interval_seconds)
