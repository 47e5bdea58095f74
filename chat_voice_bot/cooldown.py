"""Cooldown governor: standard inter-response cooldown plus punitive lockout.

Two independent timers gate whether a new generation attempt may start:

- Standard cooldown: minimum seconds between the end of the last
  successful response and the start of the next attempt.
- Punitive lockout: a longer fixed suspension entered when a provider
  reports quota exhaustion. It counts down once per second via tick()
  and re-entering it resets the counter (never additive).
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from chat_voice_bot.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_RESPONSE_COOLDOWN = 15.0
DEFAULT_LOCKOUT_DURATION = 90


@dataclass(frozen=True)
class CooldownState:
    """Read-only view of the governor.

    Attributes:
        last_success: Clock time of the last successful response (None if never).
        locked: Whether punitive lockout is active.
        lockout_remaining: Seconds left in the lockout (0 when not locked).
        cooldown_remaining: Seconds left in the standard cooldown window.
    """
    last_success: Optional[float]
    locked: bool
    lockout_remaining: int
    cooldown_remaining: float


class CooldownGovernor:
    """Gates generation attempts.

    Usage:
        governor = CooldownGovernor(cooldown=15.0)

        if governor.can_start():
            ...  # run one attempt
            governor.record_success()

        # On quota exhaustion
        governor.enter_lockout()

        # Once per second from a countdown task
        governor.tick()

    Thread-safe: All operations are protected by a lock.
    """

    def __init__(
        self,
        cooldown: float = DEFAULT_RESPONSE_COOLDOWN,
        lockout_duration: int = DEFAULT_LOCKOUT_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the governor.

        Args:
            cooldown: Standard cooldown in seconds.
            lockout_duration: Punitive lockout length in seconds.
            clock: Monotonic time source (injectable for tests).
        """
        if cooldown < 0:
            raise ValueError(f"cooldown must be >= 0, got {cooldown}")
        if lockout_duration < 1:
            raise ValueError(f"lockout_duration must be >= 1, got {lockout_duration}")
        self.cooldown = float(cooldown)
        self.lockout_duration = int(lockout_duration)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_success: Optional[float] = None
        self._lockout_remaining = 0

    # -- standard cooldown ---------------------------------------------------

    def record_success(self) -> None:
        """Stamp the completion of a successful response."""
        with self._lock:
            self._last_success = self._clock()

    def cooldown_remaining(self) -> float:
        """Seconds until the standard cooldown window ends."""
        with self._lock:
            return self._cooldown_remaining_unlocked()

    def _cooldown_remaining_unlocked(self) -> float:
        if self._last_success is None:
            return 0.0
        elapsed = self._clock() - self._last_success
        return max(0.0, self.cooldown - elapsed)

    # -- punitive lockout ----------------------------------------------------

    def enter_lockout(self, duration: Optional[int] = None) -> int:
        """Enter (or restart) punitive lockout.

        Args:
            duration: Override for the configured lockout length.

        Returns:
            The remaining lockout seconds after entering.
        """
        seconds = int(duration if duration is not None else self.lockout_duration)
        with self._lock:
            already = self._lockout_remaining > 0
            self._lockout_remaining = seconds
        if already:
            logger.warning(f"Lockout restarted: {seconds}s remaining")
        else:
            logger.event("lockout_entered", f"Quota exhausted, locking out for {seconds}s")
        return seconds

    def tick(self) -> int:
        """Count the lockout down by one second.

        Returns:
            Seconds remaining after the tick (0 when cleared).
        """
        with self._lock:
            if self._lockout_remaining <= 0:
                return 0
            self._lockout_remaining -= 1
            remaining = self._lockout_remaining
        if remaining == 0:
            logger.event("lockout_cleared", "Lockout cleared, resuming normal operation")
        return remaining

    @property
    def locked(self) -> bool:
        with self._lock:
            return self._lockout_remaining > 0

    @property
    def lockout_remaining(self) -> int:
        with self._lock:
            return self._lockout_remaining

    # -- gate ----------------------------------------------------------------

    def can_start(self) -> bool:
        """Check whether a new attempt may start now."""
        with self._lock:
            if self._lockout_remaining > 0:
                return False
            return self._cooldown_remaining_unlocked() <= 0

    def set_cooldown(self, seconds: float) -> None:
        """Change the standard cooldown (read on every check)."""
        if seconds < 0:
            raise ValueError(f"cooldown must be >= 0, got {seconds}")
        with self._lock:
            self.cooldown = float(seconds)

    def state(self) -> CooldownState:
        """Snapshot of the governor for observers."""
        with self._lock:
            remaining = self._cooldown_remaining_unlocked()
            return CooldownState(
                last_success=self._last_success,
                locked=self._lockout_remaining > 0,
                lockout_remaining=self._lockout_remaining,
                cooldown_remaining=math.ceil(remaining * 10) / 10,
            )
