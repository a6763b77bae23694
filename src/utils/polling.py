"""Polling - Bounded wait-for-completion with exponential backoff.

Repeatedly checks a remote job until it leaves its pending state:
- Suspends between checks (never blocks the event loop)
- Grows the delay by a backoff factor up to a cap
- Gives up after a maximum number of checks or an overall deadline
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from src.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class PollConfig:
    """Configuration for polling behavior."""

    interval_s: float = 1.0
    backoff_factor: float = 1.5
    max_interval_s: float = 8.0
    max_attempts: int = 60
    timeout_s: float | None = 120.0


@dataclass
class PollResult(Generic[T]):
    """Final value of a finished poll and what it took to get there."""

    value: T
    attempts: int
    elapsed_s: float


class PollExhausted(Exception):
    """The job was still pending when the polling budget ran out."""

    def __init__(self, attempts: int, elapsed_s: float, last_value: object = None):
        self.attempts = attempts
        self.elapsed_s = elapsed_s
        self.last_value = last_value
        super().__init__(
            f"Still pending after {attempts} checks ({elapsed_s:.1f}s)"
        )


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_pending: Callable[[T], bool],
    config: PollConfig | None = None,
    operation_name: str = "poll",
) -> PollResult[T]:
    """Call fetch until is_pending(result) is false.

    Args:
        fetch: Async function returning the current job state
        is_pending: Predicate deciding whether to keep waiting
        config: Polling configuration
        operation_name: Name for logging

    Returns:
        PollResult with the first non-pending value

    Raises:
        PollExhausted: If attempts or the deadline run out while pending
        Exception: Anything raised by fetch propagates unchanged

    Example:
        result = await poll_until(
            lambda: client.runs.retrieve(run_id, thread_id=thread_id),
            lambda run: run.status == "in_progress",
            config=PollConfig(max_attempts=30),
            operation_name="assistant_run",
        )
    """
    if config is None:
        config = PollConfig()

    loop = asyncio.get_running_loop()
    started = loop.time()
    delay = config.interval_s
    value: T | None = None

    for attempt in range(1, config.max_attempts + 1):
        value = await fetch()
        elapsed = loop.time() - started

        if not is_pending(value):
            return PollResult(value=value, attempts=attempt, elapsed_s=elapsed)

        if attempt == config.max_attempts:
            break

        if config.timeout_s is not None and elapsed + delay > config.timeout_s:
            logger.warning(
                f"{operation_name}_deadline_reached",
                attempts=attempt,
                elapsed_s=elapsed,
                timeout_s=config.timeout_s,
            )
            raise PollExhausted(attempt, elapsed, value)

        logger.debug(
            f"{operation_name}_pending",
            attempt=attempt,
            max_attempts=config.max_attempts,
            delay_s=delay,
        )

        await asyncio.sleep(delay)

        # Increase delay for next check
        delay = min(delay * config.backoff_factor, config.max_interval_s)

    elapsed = loop.time() - started
    logger.warning(
        f"{operation_name}_attempts_exhausted",
        attempts=config.max_attempts,
        elapsed_s=elapsed,
    )
    raise PollExhausted(config.max_attempts, elapsed, value)
