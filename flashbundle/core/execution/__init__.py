"""
Bundle Execution Layer

Provides the building blocks of a bundle run:
- FeeOracle: Derives legacy or EIP-1559 gas params from the chain head
- TransactionSequencer: Quotes, estimates and signs the three bundle legs
- InclusionMonitor: Polls receipts until every transaction is included

The end-to-end pipeline lives in ``executor`` and is imported directly,
since it depends on the relay provider, which depends on these models.

Usage:
    from flashbundle.config import Settings
    from flashbundle.core.execution.executor import BundlePipeline

    pipeline = BundlePipeline(Settings())
    try:
        result = await pipeline.run()
    finally:
        await pipeline.close()
"""

from .models import (
    OperationType,
    InclusionState,
    ChainFeeSnapshot,
    LegacyGas,
    DynamicGas,
    GasParams,
    TransactionSpec,
    SignedTransaction,
    Bundle,
    TransactionSimulation,
    SimulationResult,
    SendResult,
    InclusionStatus,
    InclusionReport,
    BundleRunResult,
)

from .fee_oracle import (
    FeeOracle,
    derive_gas_params,
)

from .signer import (
    load_account,
    sign_relay_payload,
    sign_transaction,
)

from .tx_builder import (
    SequencePlan,
    TransactionSequencer,
    apply_slippage,
    split_budget,
)

from .inclusion import (
    InclusionMonitor,
)

__all__ = [
    # Models
    "OperationType",
    "InclusionState",
    "ChainFeeSnapshot",
    "LegacyGas",
    "DynamicGas",
    "GasParams",
    "TransactionSpec",
    "SignedTransaction",
    "Bundle",
    "TransactionSimulation",
    "SimulationResult",
    "SendResult",
    "InclusionStatus",
    "InclusionReport",
    "BundleRunResult",
    # Fee Oracle
    "FeeOracle",
    "derive_gas_params",
    # Signing
    "load_account",
    "sign_relay_payload",
    "sign_transaction",
    # Sequencer
    "SequencePlan",
    "TransactionSequencer",
    "apply_slippage",
    "split_budget",
    # Inclusion
    "InclusionMonitor",
]
