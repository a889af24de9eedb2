"""
Latest-wins task coalescing

Provides cancellable, debounced recomputation for the planner and the
position-list refresh, plus correlation IDs for tracing those runs in logs.

Each submission is assigned a generation number. Starting a new submission
cancels the in-flight one; a result is adopted only if its generation is
still the latest when it completes. Superseded callers receive None.
"""

import asyncio
import contextvars
import logging
import uuid
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Context variable for correlation ID (task-local)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for run tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


def log_prefix() -> str:
    """Log message prefix for the current correlation ID (empty when unset)"""
    cid = get_correlation_id()
    return f"[{cid}] " if cid else ""


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("plan") as cid:
            logger.info(f"[{cid}] Computing deposit plan")
    """

    def __init__(self, prefix: Optional[str] = None):
        """
        Initialize correlation context.

        Args:
            prefix: Optional prefix for the correlation ID (e.g., "plan", "refresh")
        """
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


class LatestOnlyRunner(Generic[T]):
    """
    Runs coroutines so that only the most recent submission wins

    - Each run() gets a new generation; the previous in-flight run is cancelled
    - With debounce_seconds > 0 the work starts only after a quiet period, so
      a burst of submissions executes the work once, for the last input
    - Superseded callers get None, never a stale result
    - latest holds the result of the most recent adopted generation

    Usage:
        runner = LatestOnlyRunner("plan", debounce_seconds=0.5)
        result = await runner.run(lambda: compute(request))
        if result is None:
            pass  # superseded by a newer submission
    """

    def __init__(self, name: str = "run", debounce_seconds: float = 0.0):
        self._name = name
        self._debounce_seconds = debounce_seconds
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self.latest: Optional[T] = None
        self.latest_generation = 0

    @property
    def generation(self) -> int:
        """Generation of the most recent submission"""
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _execute(self, factory: Callable[[], Awaitable[T]], generation: int) -> T:
        with CorrelationContext(f"{self._name}{generation}") as cid:
            if self._debounce_seconds > 0:
                await asyncio.sleep(self._debounce_seconds)
            logger.debug(f"[{cid}] Starting {self._name} generation {generation}")
            return await factory()

    async def run(self, factory: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Submit work, superseding any in-flight submission

        Args:
            factory: Zero-argument callable returning the awaitable to run

        Returns:
            The result, or None if a newer submission superseded this one

        Raises:
            Whatever the work raises, if this submission is still the latest
        """
        self._generation += 1
        generation = self._generation

        previous = self._task
        if previous is not None and not previous.done():
            logger.debug(f"Cancelling {self._name} generation {generation - 1}")
            previous.cancel()

        task = asyncio.ensure_future(self._execute(factory, generation))
        self._task = task

        try:
            result = await task
        except asyncio.CancelledError:
            if not self.is_current(generation):
                return None
            raise
        except Exception:
            if not self.is_current(generation):
                logger.debug(f"Discarding error of superseded {self._name} generation {generation}")
                return None
            raise

        if not self.is_current(generation):
            logger.debug(f"Discarding stale {self._name} generation {generation}")
            return None

        self.latest = result
        self.latest_generation = generation
        return result

    def cancel(self) -> None:
        """Cancel the in-flight submission and invalidate its generation"""
        self._generation += 1
        if self.in_flight:
            self._task.cancel()

    def reset(self) -> None:
        """Cancel any in-flight work and forget the latest result"""
        self.cancel()
        self.latest = None
        self.latest_generation = 0
