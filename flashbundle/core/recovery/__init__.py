"""
Error Recovery Module

Provides the pipeline error taxonomy, backoff policies and the bounded
retry loop used around bundle submission.
"""

from .errors import (
    BundleError,
    RecoverableError,
    UnrecoverableError,
    ErrorCategory,
    ErrorContext,
    PipelineStage,
    TransportError,
    RelayProtocolError,
    GasEstimationError,
    ChainQueryError,
    RouteError,
    SequencingError,
    SimulationError,
    RetryExhaustedError,
    InclusionTimeoutError,
    CancellationError,
)
from .runtime import RunContext
from .strategies import (
    BackoffPolicy,
    RetryCoordinator,
    RetryResult,
    linear_backoff,
    retry_with_backoff,
)

__all__ = [
    # Errors
    "BundleError",
    "RecoverableError",
    "UnrecoverableError",
    "ErrorCategory",
    "ErrorContext",
    "PipelineStage",
    "TransportError",
    "RelayProtocolError",
    "GasEstimationError",
    "ChainQueryError",
    "RouteError",
    "SequencingError",
    "SimulationError",
    "RetryExhaustedError",
    "InclusionTimeoutError",
    "CancellationError",
    # Runtime
    "RunContext",
    # Strategies
    "BackoffPolicy",
    "RetryCoordinator",
    "RetryResult",
    "linear_backoff",
    "retry_with_backoff",
]
