"""
Error Classification

Defines the error taxonomy of the bundle pipeline.
Errors are classified as recoverable (can retry) or unrecoverable (terminal
for the run). Each carries the pipeline stage it came from so callers can
tell "nothing was sent" apart from "sent but not confirmed".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    CHAIN_QUERY = "chain_query"   # Header/nonce/fee/call lookups
    ROUTE = "route"               # Swap route has no usable output
    SEQUENCING = "sequencing"     # Pool state or amounts make the bundle unbuildable
    GAS_ESTIMATION = "gas_estimation"
    SIMULATION = "simulation"     # Relay simulation rejected the bundle
    RELAY_PROTOCOL = "relay_protocol"
    TRANSPORT = "transport"       # HTTP/connection failure
    RETRY_EXHAUSTED = "retry_exhausted"
    TIMEOUT = "timeout"           # Inclusion not observed in time
    CANCELLED = "cancelled"


class PipelineStage(str, Enum):
    """Ordered stages of a bundle run."""

    FEES = "fees"
    NONCE = "nonce"
    SEQUENCING = "sequencing"
    SIMULATION = "simulation"
    SUBMISSION = "submission"
    INCLUSION = "inclusion"


# Stages after which the relay may hold the bundle
_SENT_STAGES = {PipelineStage.INCLUSION}


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory
    recoverable: bool = True
    stage: Optional[PipelineStage] = None
    tx_index: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


class BundleError(Exception):
    """Base class for every pipeline error."""

    category: ErrorCategory = ErrorCategory.CHAIN_QUERY
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        stage: Optional[PipelineStage] = None,
        tx_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=self.category,
            recoverable=self.recoverable,
            stage=stage,
            tx_index=tx_index,
            details=details or {},
        )

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self.context.stage

    @property
    def tx_index(self) -> Optional[int]:
        return self.context.tx_index

    @property
    def bundle_sent(self) -> bool:
        """Whether the relay accepted the bundle before this error occurred."""
        return self.context.stage in _SENT_STAGES


class RecoverableError(BundleError):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - Connection resets and HTTP failures
    - Relay-side protocol errors on send
    - Gas estimation hiccups
    """

    recoverable = True


class UnrecoverableError(BundleError):
    """
    Base class for errors that end the run.

    - Chain state could not be read
    - The swap route or pool is unusable
    - Simulation reverted
    - Retries exhausted, inclusion timed out, or the run was cancelled
    """

    recoverable = False


# Recoverable
class TransportError(RecoverableError):
    """HTTP request to the relay failed before a response was parsed."""

    category = ErrorCategory.TRANSPORT


class RelayProtocolError(RecoverableError):
    """Relay answered with a top-level JSON-RPC error object."""

    category = ErrorCategory.RELAY_PROTOCOL

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        stage: Optional[PipelineStage] = PipelineStage.SUBMISSION,
    ):
        super().__init__(message, stage=stage, details={"code": code} if code is not None else None)
        self.code = code


class GasEstimationError(RecoverableError):
    """Every gas estimation attempt failed; callers fall back to static limits."""

    category = ErrorCategory.GAS_ESTIMATION

    def __init__(self, message: str, operation: str, attempts: int):
        super().__init__(
            message,
            stage=PipelineStage.SEQUENCING,
            details={"operation": operation, "attempts": attempts},
        )
        self.operation = operation
        self.attempts = attempts


# Unrecoverable
class ChainQueryError(UnrecoverableError):
    """A chain RPC lookup failed."""

    category = ErrorCategory.CHAIN_QUERY

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        stage: Optional[PipelineStage] = None,
    ):
        super().__init__(message, stage=stage, details={"method": method} if method else None)
        self.method = method


class RouteError(UnrecoverableError):
    """The swap route is unusable: no output amount or no pool to trade through."""

    category = ErrorCategory.ROUTE

    def __init__(
        self,
        message: str,
        tx_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, stage=PipelineStage.SEQUENCING, tx_index=tx_index, details=details)


class SequencingError(RouteError):
    """The bundle cannot be built from current pool state or amounts."""

    category = ErrorCategory.SEQUENCING

    def __init__(self, message: str, tx_index: Optional[int] = None, **details: Any):
        super().__init__(message, tx_index=tx_index, details=details)


class SimulationError(UnrecoverableError):
    """Relay simulation rejected the bundle; it is never sent."""

    category = ErrorCategory.SIMULATION

    def __init__(
        self,
        message: str,
        tx_index: Optional[int] = None,
        revert_reason: Optional[str] = None,
        code: Optional[int] = None,
    ):
        details: Dict[str, Any] = {}
        if revert_reason:
            details["revert_reason"] = revert_reason
        if code is not None:
            details["code"] = code
        super().__init__(message, stage=PipelineStage.SIMULATION, tx_index=tx_index, details=details)
        self.revert_reason = revert_reason
        self.code = code


class RetryExhaustedError(UnrecoverableError):
    """All send attempts failed."""

    category = ErrorCategory.RETRY_EXHAUSTED

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}",
            stage=PipelineStage.SUBMISSION,
            details={"operation": operation, "attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error


class InclusionTimeoutError(UnrecoverableError):
    """Not every bundle transaction was confirmed before the timeout."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, included: int, total: int, timeout_seconds: float):
        super().__init__(
            f"bundle inclusion timeout after {timeout_seconds:g}s (included: {included}/{total})",
            stage=PipelineStage.INCLUSION,
            details={"included": included, "total": total},
        )
        self.included = included
        self.total = total
        self.timeout_seconds = timeout_seconds


class CancellationError(UnrecoverableError):
    """The run's cancellation signal fired."""

    category = ErrorCategory.CANCELLED

    def __init__(self, stage: Optional[PipelineStage] = None):
        where = f" during {stage.value}" if stage else ""
        super().__init__(f"run cancelled{where}", stage=stage)
