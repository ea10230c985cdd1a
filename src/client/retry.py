"""
Reconnect Retry Policy

Decides how long the negotiation controller waits before asking for a
fresh transport, and when it should stop asking.
"""

from dataclasses import dataclass, field
from typing import Optional

RECONNECT_DELAY = 2.0  # seconds before the first reconnect request
MAX_RECONNECT_ATTEMPTS = 5


@dataclass
class RetryPolicy:
    """
    Bounded-delay retry schedule.

    Attributes:
        delay: Wait before the first attempt, in seconds
        max_attempts: Attempts allowed before giving up; None for no limit
        backoff: Factor applied to the delay after each attempt
        attempts: Attempts handed out since the last reset
    """

    delay: float = RECONNECT_DELAY
    max_attempts: Optional[int] = MAX_RECONNECT_ATTEMPTS
    backoff: float = 1.0
    attempts: int = field(default=0, init=False)

    @property
    def exhausted(self) -> bool:
        return self.max_attempts is not None and self.attempts >= self.max_attempts

    def next_delay(self) -> Optional[float]:
        """
        Claim the next attempt.

        Returns:
            Seconds to wait before it, or None once attempts are used up
        """
        if self.exhausted:
            return None
        wait = self.delay * (self.backoff ** self.attempts)
        self.attempts += 1
        return wait

    def reset(self):
        """Forget past attempts, typically after a successful connection."""
        self.attempts = 0
