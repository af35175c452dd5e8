"""
Recovery Strategies

Backoff policies and the bounded retry loop used around bundle submission.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from .runtime import RunContext
from .errors import (
    CancellationError,
    PipelineStage,
    RecoverableError,
    RelayProtocolError,
    RetryExhaustedError,
    UnrecoverableError,
)

T = TypeVar("T")

BackoffPolicy = Callable[[int], float]


def linear_backoff(step_seconds: float) -> BackoffPolicy:
    """Delay grows by ``step_seconds`` per failed attempt (1-based)."""

    def policy(attempt: int) -> float:
        return attempt * step_seconds

    return policy


@dataclass
class RetryResult(Generic[T]):
    """Successful outcome of a retried operation."""

    value: T
    attempts: int

    @property
    def recovered(self) -> bool:
        return self.attempts > 1


class RetryCoordinator:
    """
    Runs an operation up to ``max_retries`` times.

    An attempt fails when the operation raises a recoverable error or when
    ``response_error`` reports a protocol error on an otherwise delivered
    response. Unrecoverable errors and cancellation stop the loop at once.
    No sleep follows the final attempt.
    """

    def __init__(
        self,
        max_retries: int = 3,
        backoff: Optional[BackoffPolicy] = None,
        run_context: Optional[RunContext] = None,
        stage: PipelineStage = PipelineStage.SUBMISSION,
        logger: Optional[logging.Logger] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.backoff = backoff or linear_backoff(1.0)
        self.run_context = run_context or RunContext()
        self.stage = stage
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
        response_error: Optional[Callable[[T], Optional[RelayProtocolError]]] = None,
    ) -> RetryResult[T]:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            self.run_context.check_cancelled(self.stage)

            try:
                result = await operation()
            except UnrecoverableError:
                raise
            except RecoverableError as e:
                last_error = e
            else:
                protocol_error = response_error(result) if response_error else None
                if protocol_error is None:
                    if attempt > 1:
                        self.logger.info(f"{operation_name} succeeded on attempt {attempt}")
                    return RetryResult(value=result, attempts=attempt)
                last_error = protocol_error

            if attempt < self.max_retries:
                delay = self.backoff(attempt)
                self.logger.warning(
                    f"{operation_name} attempt {attempt}/{self.max_retries} failed: {last_error}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self.run_context.pause(delay, self.stage)

        self.logger.error(f"{operation_name} failed after {self.max_retries} attempts: {last_error}")
        raise RetryExhaustedError(operation_name, self.max_retries, last_error)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    attempts: int,
    backoff: BackoffPolicy,
    run_context: RunContext,
    stage: PipelineStage,
) -> Any:
    """Plain retry loop that re-raises the last failure.

    Used where any exception counts as a failed attempt and the caller owns
    the fallback (gas estimation).
    """

    attempt = 1
    while True:
        run_context.check_cancelled(stage)
        try:
            return await operation()
        except CancellationError:
            raise
        except Exception:  # noqa: BLE001
            if attempt >= attempts:
                raise
        await run_context.pause(backoff(attempt), stage)
        attempt += 1
