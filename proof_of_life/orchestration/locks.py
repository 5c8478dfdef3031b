# ABOUTME: Pipeline action lock with a watchdog that force-releases it after a bounded timeout.
# ABOUTME: Also decides when dispatcher commands must be disabled while a chain action is in flight.

import asyncio

from loguru import logger

from proof_of_life.models.session import SessionState, TurnPhase, TurnStep


class PipelineLock:
    """
    Single-holder lock for a multi-step chain action.

    A watchdog timer is armed on acquire; if the holder never releases, the
    lock is force-released and a warning is logged. There is no cancellation
    of the in-flight work itself, so release is keyed by the holder label and
    a late release from a force-released holder leaves the next holder alone.
    """

    def __init__(self, watchdog_seconds: float = 120.0, name: str = "action"):
        self.watchdog_seconds = watchdog_seconds
        self.name = name
        self._held_by: str | None = None
        self._watchdog: asyncio.TimerHandle | None = None
        self.forced_releases = 0

    @property
    def locked(self) -> bool:
        return self._held_by is not None

    @property
    def holder(self) -> str | None:
        return self._held_by

    def try_acquire(self, label: str) -> bool:
        """Take the lock for `label`; returns False when already held"""
        if self._held_by is not None:
            logger.debug(f"{self.name} lock busy ({self._held_by}); refused {label}")
            return False
        self._held_by = label
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(self.watchdog_seconds, self._force_release, label)
        return True

    def release(self, label: str) -> None:
        """Release the hold taken by `label`; a holder that was already force-released is ignored"""
        if self._held_by != label:
            logger.debug(f"{self.name} lock release by stale holder {label} ignored (held by {self._held_by})")
            return
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self._held_by = None

    def _force_release(self, label: str) -> None:
        if self._held_by != label:
            return
        self.forced_releases += 1
        logger.warning(
            f"{self.name} lock held by '{label}' exceeded {self.watchdog_seconds}s; force-releasing"
        )
        self._watchdog = None
        self._held_by = None


def commands_disabled(session: SessionState | None, command_locked: bool, pipeline_locked: bool = False) -> bool:
    """True when the dispatcher must not be offered ward directives"""
    if session is None or session.ended:
        return True
    if command_locked or pipeline_locked:
        return True
    if session.phase != TurnPhase.DISPATCHER:
        return True
    return session.turn_step != TurnStep.COMMAND
