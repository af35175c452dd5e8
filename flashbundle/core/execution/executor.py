"""
Bundle pipeline.

Runs one bundle through its full lifecycle:
- Fee derivation
- Nonce lookup and transaction sequencing
- Relay simulation
- Submission with bounded retries
- Inclusion monitoring
"""

import logging
import time
import uuid
from typing import Callable, Optional

from ...config import Settings
from ...logging_config import bind_run_id
from ...providers.flashbots import BundleProtocolClient, send_error
from ...providers.rpc import ChainClient
from ...services.evm import from_hex_quantity, wei_to_eth
from ...services.uniswap import RouterQuoter
from ..recovery.errors import ChainQueryError, PipelineStage
from ..recovery.runtime import RunContext
from ..recovery.strategies import RetryCoordinator, linear_backoff
from .fee_oracle import FeeOracle
from .inclusion import InclusionMonitor
from .models import Bundle, BundleRunResult
from .signer import load_account
from .tx_builder import TransactionSequencer


logger = logging.getLogger(__name__)


class BundlePipeline:
    """
    Executes the approve, swap and add-liquidity bundle end to end.

    Stages run strictly in order and each consumes only the previous
    stage's output. Errors carry the stage they came from, so callers can
    tell a run that never sent anything from one that sent but was not
    confirmed.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        chain: Optional[ChainClient] = None,
        relay: Optional[BundleProtocolClient] = None,
        run_context: Optional[RunContext] = None,
        now: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.run_context = run_context or RunContext()
        self.account = load_account(settings.eoa_private_key)
        self.auth_account = load_account(settings.flashbots_signer_key)

        self.chain = chain or ChainClient(settings.rpc_url, timeout_s=settings.rpc_timeout_seconds)
        self.relay = relay or BundleProtocolClient(
            settings.relay_url,
            self.auth_account,
            simulate_method=settings.simulate_method,
            send_method=settings.send_method,
            timeout_s=settings.relay_timeout_seconds,
        )

        self.fee_oracle = FeeOracle(self.chain, settings)
        self.sequencer = TransactionSequencer(
            self.chain,
            RouterQuoter(self.chain, settings.router_address, settings.weth_address),
            settings,
            self.account,
            run_context=self.run_context,
            now=now,
        )
        self.retry = RetryCoordinator(
            max_retries=settings.send_max_retries,
            backoff=linear_backoff(settings.send_backoff_seconds),
            run_context=self.run_context,
            stage=PipelineStage.SUBMISSION,
            logger=logger,
        )
        self.monitor = InclusionMonitor(
            self.chain.get_transaction_receipt,
            run_context=self.run_context,
            timeout_seconds=settings.inclusion_timeout_seconds,
            poll_seconds=settings.inclusion_poll_seconds,
            progress_interval_seconds=settings.progress_interval_seconds,
        )

    async def _chain_lookup(self, stage: PipelineStage, coro):
        try:
            return await coro
        except ChainQueryError as e:
            raise ChainQueryError(str(e), method=e.method, stage=stage) from e

    async def build_bundle(self) -> Bundle:
        """Derive fees, sequence and sign the three transactions for the next block."""
        ctx = self.run_context

        ctx.check_cancelled(PipelineStage.FEES)
        gas_params = await self.fee_oracle.get_gas_params()

        ctx.check_cancelled(PipelineStage.NONCE)
        chain_id = await self._chain_lookup(PipelineStage.NONCE, self.chain.get_chain_id())
        nonce = await self._chain_lookup(
            PipelineStage.NONCE, self.chain.get_pending_nonce(self.account.address)
        )
        logger.info(f"EOA {self.account.address}: chain id {chain_id}, nonce {nonce}")

        transactions = await self.sequencer.build(nonce, gas_params, chain_id)

        head = await self._chain_lookup(PipelineStage.SIMULATION, self.chain.get_latest_block())
        bundle = Bundle(
            transactions=transactions,
            target_block_number=(from_hex_quantity(head.get("number")) or 0) + 1,
        )
        logger.info(
            f"Bundle stats: total gas {bundle.total_gas_limit}, "
            f"est. fees ~{wei_to_eth(bundle.fee_ceiling_wei)} ETH, "
            f"target block {bundle.target_block_number}"
        )
        return bundle

    async def run(self, simulate_only: bool = False) -> BundleRunResult:
        """
        Run the pipeline once.

        Args:
            simulate_only: Stop after a successful simulation without sending

        Returns:
            BundleRunResult; ``confirmed`` is True only when every
            transaction was included

        Raises:
            BundleError subclasses, with ``stage`` and ``bundle_sent`` set
        """
        run_id = uuid.uuid4().hex[:12]
        ctx = self.run_context

        with bind_run_id(run_id):
            bundle = await self.build_bundle()

            ctx.check_cancelled(PipelineStage.SIMULATION)
            simulation = await self.relay.simulate(bundle)
            logger.info(f"Bundle simulation successful: total gas used {simulation.total_gas_used}")

            result = BundleRunResult(run_id=run_id, bundle=bundle, simulation=simulation)
            if simulate_only:
                logger.info("Simulate-only run; bundle not sent")
                return result

            sent = await self.retry.run(
                lambda: self.relay.send(bundle),
                operation_name="send bundle",
                response_error=send_error,
            )
            result.bundle_hash = sent.value.bundle_hash
            result.send_attempts = sent.attempts
            logger.info(f"Bundle submitted: {result.bundle_hash}")

            result.inclusion = await self.monitor.wait(bundle.hashes)
            return result

    async def close(self) -> None:
        await self.chain.close()
        await self.relay.close()
