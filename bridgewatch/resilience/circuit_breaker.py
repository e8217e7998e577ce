"""Circuit breaker for the upstream bridge API.

Provides a per-upstream circuit breaker with:
- Three states: CLOSED (normal), OPEN (failing), HALF_OPEN (testing)
- Configurable failure and success thresholds
- Single-probe recovery testing after a cooldown
- Periodic forgiveness of stale failures
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Service failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # Testing if service recovered


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open."""

    pass


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for the circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    success_threshold: int = 2  # Successes to close from half-open
    open_timeout: float = 60.0  # Seconds before trying half-open
    reset_timeout: float = 300.0  # Seconds after which failures are forgotten


class CircuitBreaker:
    """Circuit breaker guarding calls to one upstream.

    State is only touched between awaits, so no lock is needed on a single
    event loop.

    Usage:
        breaker = CircuitBreaker("bridge_api")
        response = await breaker.execute(lambda: requester.send(request))
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
    ):
        """Initialize circuit breaker.

        Args:
            name: Upstream name for logging
            config: Circuit breaker configuration
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._last_reset_time = time.monotonic()
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state (transitions only happen inside ``execute``)."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` unless the circuit is open.

        Args:
            operation: Zero-argument coroutine factory

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: If the circuit rejects the call
            Exception: Whatever the operation raised, after counters update
        """
        self._forgive_stale_failures()
        self._before_call()

        probing = self._state == CircuitState.HALF_OPEN
        if probing:
            self._probe_in_flight = True
        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise
        else:
            self._on_success()
            return result
        finally:
            if probing:
                self._probe_in_flight = False

    def _forgive_stale_failures(self) -> None:
        now = time.monotonic()
        if now - self._last_reset_time >= self.config.reset_timeout:
            if self._failure_count:
                logger.debug(
                    f"Circuit breaker {self.name} forgetting {self._failure_count} stale failures"
                )
            self._failure_count = 0
            self._last_reset_time = now

    def _before_call(self) -> None:
        if self._state == CircuitState.OPEN:
            elapsed = time.monotonic() - (self._last_failure_time or 0.0)
            if elapsed < self.config.open_timeout:
                raise CircuitOpenError(f"Circuit breaker {self.name} is OPEN")
            self._transition_to_half_open()
        elif self._state == CircuitState.HALF_OPEN and self._probe_in_flight:
            raise CircuitOpenError(f"Circuit breaker {self.name} is probing upstream")

    def _on_success(self) -> None:
        self._failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition_to_closed()

    def _on_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open goes back to open
            self._transition_to_open()
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.config.failure_threshold:
                self._transition_to_open()

    def _transition_to_open(self) -> None:
        logger.warning(f"Circuit breaker {self.name} OPENED after {self._failure_count} failures")
        self._state = CircuitState.OPEN
        self._success_count = 0

    def _transition_to_half_open(self) -> None:
        logger.info(f"Circuit breaker {self.name} entering HALF_OPEN for recovery test")
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0

    def _transition_to_closed(self) -> None:
        logger.info(f"Circuit breaker {self.name} CLOSED - service recovered")
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        self._last_reset_time = time.monotonic()
        self._probe_in_flight = False
        logger.info(f"Circuit breaker {self.name} manually reset")

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status.

        Returns:
            Status dictionary
        """
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure": self._last_failure_time,
        }
