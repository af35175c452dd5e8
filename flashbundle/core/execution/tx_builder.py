"""
Transaction sequencing for the approve, swap and add-liquidity bundle.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from eth_account.signers.local import LocalAccount

from ...config import Settings
from ...providers.rpc import ChainClient
from ...services.evm import MAX_UINT256, format_token_amount, scale
from ...services.uniswap import (
    RouterQuoter,
    encode_add_liquidity_eth,
    encode_approve,
    encode_swap_exact_eth_for_tokens,
)
from ..recovery.errors import ChainQueryError, GasEstimationError, PipelineStage, SequencingError
from ..recovery.runtime import RunContext
from ..recovery.strategies import linear_backoff, retry_with_backoff
from .models import (
    BUNDLE_OPERATIONS,
    GasParams,
    OperationType,
    SignedTransaction,
    TransactionSpec,
)
from .signer import sign_transaction


logger = logging.getLogger(__name__)


def apply_slippage(amount: int, slippage: float) -> int:
    """Minimum acceptable amount: ``floor(amount * (1 - slippage))``."""
    return scale(amount, Decimal(1) - Decimal(str(slippage)))


def split_budget(total: int) -> Tuple[int, int]:
    """Split the ETH budget into swap and liquidity shares without losing dust."""
    for_swap = total // 2
    return for_swap, total - for_swap


def _require_uint256(name: str, value: int) -> None:
    if value < 0 or value > MAX_UINT256:
        raise SequencingError(f"{name} does not fit in uint256", amount=name)


@dataclass(frozen=True)
class SequencePlan:
    """Amounts and bounds shared by the three bundle legs."""
    path: Tuple[str, str]
    eth_for_swap: int
    eth_for_liquidity: int
    expected_tokens: int
    amount_out_min: int
    token_min: int
    eth_min: int
    deadline: int


class TransactionSequencer:
    """
    Builds the three nonce-ordered bundle transactions.

    Every amount is quoted and validated before the first signature, so a
    failure here never leaves a partially signed bundle behind.
    """

    def __init__(
        self,
        chain: ChainClient,
        quoter: RouterQuoter,
        settings: Settings,
        account: LocalAccount,
        run_context: Optional[RunContext] = None,
        now: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.quoter = quoter
        self.settings = settings
        self.account = account
        self.run_context = run_context or RunContext()
        self.now = now

    async def plan(self) -> SequencePlan:
        """Quote the swap and derive every amount the bundle needs."""
        settings = self.settings
        self.run_context.check_cancelled(PipelineStage.SEQUENCING)

        total = settings.eth_amount_wei
        _require_uint256("total_value", total)
        eth_for_swap, eth_for_liquidity = split_budget(total)
        path = (settings.weth_address, settings.token_address)

        expected_tokens = await self.quoter.get_amounts_out(eth_for_swap, list(path))
        logger.info(f"Expected token output: {format_token_amount(expected_tokens)}")

        pool = await self.quoter.get_pool(settings.token_address)
        if settings.liquidity_funding == "reserve_ratio":
            eth_for_liquidity = expected_tokens * pool.eth_reserve // pool.token_reserve
            eth_for_liquidity = eth_for_liquidity * settings.reserve_ratio_haircut_percent // 100
            logger.info(f"Reserve-ratio liquidity funding: {eth_for_liquidity} wei")

        if expected_tokens == 0:
            raise SequencingError("swap quote returned zero tokens", tx_index=2)
        if eth_for_liquidity == 0:
            raise SequencingError("liquidity ETH share is zero", tx_index=3)

        plan = SequencePlan(
            path=path,
            eth_for_swap=eth_for_swap,
            eth_for_liquidity=eth_for_liquidity,
            expected_tokens=expected_tokens,
            amount_out_min=apply_slippage(expected_tokens, settings.slippage),
            token_min=apply_slippage(expected_tokens, settings.slippage),
            eth_min=apply_slippage(eth_for_liquidity, settings.slippage),
            deadline=int(self.now()) + settings.deadline_seconds,
        )
        for name in ("eth_for_liquidity", "expected_tokens", "deadline"):
            _require_uint256(name, getattr(plan, name))
        if plan.eth_for_swap + plan.eth_for_liquidity > MAX_UINT256:
            raise SequencingError("total value does not fit in uint256", amount="total_value")
        return plan

    def _calls(self, plan: SequencePlan) -> List[Dict]:
        """Unsigned call objects in bundle order."""
        settings = self.settings
        eoa = self.account.address
        return [
            {
                "to": settings.token_address,
                "value": 0,
                "data": encode_approve(settings.router_address, plan.expected_tokens),
            },
            {
                "to": settings.router_address,
                "value": plan.eth_for_swap,
                "data": encode_swap_exact_eth_for_tokens(
                    plan.amount_out_min, list(plan.path), eoa, plan.deadline
                ),
            },
            {
                "to": settings.router_address,
                "value": plan.eth_for_liquidity,
                "data": encode_add_liquidity_eth(
                    settings.token_address,
                    plan.expected_tokens,
                    plan.token_min,
                    plan.eth_min,
                    eoa,
                    plan.deadline,
                ),
            },
        ]

    async def estimate_gas_limit(self, operation: OperationType, call: Dict) -> int:
        """Buffered gas estimate, or the buffered static default when estimation keeps failing."""
        settings = self.settings
        attempts = settings.gas_estimate_attempts

        try:
            estimate = await retry_with_backoff(
                lambda: self.chain.estimate_gas({"from": self.account.address, **call}),
                attempts=attempts,
                backoff=linear_backoff(settings.gas_estimate_backoff_seconds),
                run_context=self.run_context,
                stage=PipelineStage.SEQUENCING,
            )
        except (ChainQueryError, ValueError) as e:
            error = GasEstimationError(
                f"gas estimation failed after {attempts} retries: {e}",
                operation=operation.value,
                attempts=attempts,
            )
            logger.warning(f"Using default gas limit for {operation.value}: {error}")
            return settings.buffered(settings.default_gas_limit(operation.value))

        return settings.buffered(estimate)

    async def build_specs(
        self,
        plan: SequencePlan,
        nonce: int,
        gas_params: GasParams,
        chain_id: int,
    ) -> List[TransactionSpec]:
        specs = []
        for index, (operation, call) in enumerate(zip(BUNDLE_OPERATIONS, self._calls(plan))):
            gas_limit = await self.estimate_gas_limit(operation, call)
            specs.append(
                TransactionSpec(
                    operation=operation,
                    nonce=nonce + index,
                    to=call["to"],
                    value=call["value"],
                    data=call["data"],
                    gas_limit=gas_limit,
                    gas_params=gas_params,
                    chain_id=chain_id,
                )
            )
        return specs

    async def build(self, nonce: int, gas_params: GasParams, chain_id: int) -> Tuple[SignedTransaction, ...]:
        """
        Quote, estimate and sign the bundle legs at ``nonce``, ``nonce+1``, ``nonce+2``.

        Raises:
            RouteError: the swap route returned no usable output
            SequencingError: missing/empty pool or amount overflow
        """
        plan = await self.plan()
        specs = await self.build_specs(plan, nonce, gas_params, chain_id)

        self.run_context.check_cancelled(PipelineStage.SEQUENCING)
        signed = tuple(sign_transaction(spec, self.account) for spec in specs)

        for index, tx in enumerate(signed, start=1):
            logger.info(
                f"Built tx {index} ({tx.spec.operation.value}): nonce {tx.spec.nonce}, "
                f"hash {tx.hash}, gas limit {tx.spec.gas_limit}"
            )
        return signed
