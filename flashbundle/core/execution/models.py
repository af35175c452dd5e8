"""
Bundle execution models and types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_utils import to_checksum_address


class OperationType(str, Enum):
    """The three legs of a bundle, in execution order."""
    APPROVE = "approve"
    SWAP = "swap"
    ADD_LIQUIDITY = "add_liquidity"


BUNDLE_OPERATIONS: Tuple[OperationType, ...] = (
    OperationType.APPROVE,
    OperationType.SWAP,
    OperationType.ADD_LIQUIDITY,
)


class InclusionState(str, Enum):
    """Per-transaction inclusion status."""
    PENDING = "pending"
    INCLUDED = "included"        # Terminal


@dataclass
class ChainFeeSnapshot:
    """Fee conditions read from the chain head for one run."""
    suggested_legacy_price: int
    suggested_priority_fee: Optional[int] = None   # None when the tip query failed
    base_fee: Optional[int] = None                 # None before the fee-market upgrade
    head_number: int = 0


@dataclass(frozen=True)
class LegacyGas:
    """Pre-fee-market pricing: a single gas price."""
    price: int

    @property
    def effective_price(self) -> int:
        return self.price


@dataclass(frozen=True)
class DynamicGas:
    """EIP-1559 pricing: fee cap plus priority tip."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def effective_price(self) -> int:
        return self.max_fee_per_gas


GasParams = Union[LegacyGas, DynamicGas]


@dataclass(frozen=True)
class TransactionSpec:
    """An unsigned transaction at a fixed nonce."""
    operation: OperationType
    nonce: int
    to: str
    value: int
    data: str                       # Encoded calldata (hex)
    gas_limit: int
    gas_params: GasParams
    chain_id: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary shape eth-account signs."""
        tx: Dict[str, Any] = {
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "to": to_checksum_address(self.to),
            "value": self.value,
            "data": self.data,
            "gas": self.gas_limit,
        }
        if isinstance(self.gas_params, DynamicGas):
            tx["type"] = 2
            tx["maxFeePerGas"] = self.gas_params.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = self.gas_params.max_priority_fee_per_gas
        else:
            tx["gasPrice"] = self.gas_params.price
        return tx


@dataclass(frozen=True)
class SignedTransaction:
    """A signed transaction and its canonical wire encoding."""
    spec: TransactionSpec
    raw: bytes
    hash: str

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()


@dataclass(frozen=True)
class Bundle:
    """Ordered signed transactions aimed at a single target block."""
    transactions: Tuple[SignedTransaction, ...]
    target_block_number: int

    @property
    def raw_transactions(self) -> List[str]:
        return [tx.raw_hex for tx in self.transactions]

    @property
    def hashes(self) -> List[str]:
        return [tx.hash for tx in self.transactions]

    @property
    def total_gas_limit(self) -> int:
        return sum(tx.spec.gas_limit for tx in self.transactions)

    @property
    def fee_ceiling_wei(self) -> int:
        """Upper bound on fees if every leg used its full gas limit."""
        return sum(tx.spec.gas_limit * tx.spec.gas_params.effective_price for tx in self.transactions)


@dataclass
class TransactionSimulation:
    """Relay simulation outcome for a single transaction."""
    index: int                      # 1-based
    tx_hash: Optional[str] = None
    gas_used: int = 0
    gas_fees: int = 0
    error: Optional[str] = None
    revert: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return not self.error


@dataclass
class SimulationResult:
    """Successful relay simulation summary."""
    results: List[TransactionSimulation] = field(default_factory=list)
    total_gas_used: int = 0
    coinbase_diff: Optional[int] = None
    bundle_hash: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class SendResult:
    """Relay answer to a send request.

    A delivered response may still carry a protocol error; the retry loop
    treats that as a failed attempt.
    """
    bundle_hash: Optional[str] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None

    @property
    def is_success(self) -> bool:
        return self.error_message is None and bool(self.bundle_hash)


@dataclass
class InclusionStatus:
    """Inclusion state of one bundle transaction."""
    tx_hash: str
    state: InclusionState = InclusionState.PENDING
    block_number: Optional[int] = None

    @property
    def is_included(self) -> bool:
        return self.state == InclusionState.INCLUDED

    def mark_included(self, block_number: int) -> None:
        self.state = InclusionState.INCLUDED
        self.block_number = block_number


@dataclass
class InclusionReport:
    """Final state of every bundle transaction after monitoring."""
    statuses: List[InclusionStatus]
    elapsed_seconds: float = 0.0

    @property
    def included_count(self) -> int:
        return sum(1 for status in self.statuses if status.is_included)

    @property
    def total(self) -> int:
        return len(self.statuses)

    @property
    def all_included(self) -> bool:
        return self.included_count == self.total


@dataclass
class BundleRunResult:
    """Outcome of one pipeline run."""
    run_id: str
    bundle: Bundle
    simulation: SimulationResult
    bundle_hash: Optional[str] = None
    send_attempts: int = 0
    inclusion: Optional[InclusionReport] = None

    @property
    def sent(self) -> bool:
        return self.bundle_hash is not None

    @property
    def confirmed(self) -> bool:
        return self.inclusion is not None and self.inclusion.all_included
