"""
Tests for the end-to-end bundle pipeline with stubbed chain and relay.
"""

import pytest
from unittest.mock import AsyncMock

from eth_abi import encode as abi_encode

from flashbundle.core.execution.executor import BundlePipeline
from flashbundle.core.execution.models import SendResult, SimulationResult
from flashbundle.core.recovery.errors import (
    CancellationError,
    ChainQueryError,
    InclusionTimeoutError,
    PipelineStage,
    RetryExhaustedError,
    SimulationError,
    TransportError,
)
from flashbundle.providers.flashbots import parse_simulation
from flashbundle.services.uniswap import (
    encode_factory,
    encode_get_amounts_out,
    encode_get_pair,
    encode_get_reserves,
    encode_token0,
)

GWEI = 10**9
FACTORY = "0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f"
PAIR = "0x3333333333333333333333333333333333333333"


def _hex(types, values) -> str:
    return "0x" + abi_encode(types, values).hex()


class PipelineChain:
    """Chain stub covering every lookup the pipeline makes."""

    def __init__(self, settings, receipt=None):
        weth = settings.weth_address.lower()
        self.get_latest_block = AsyncMock(return_value={"number": "0x64", "baseFeePerGas": hex(10 * GWEI)})
        self.get_gas_price = AsyncMock(return_value=20 * GWEI)
        self.get_max_priority_fee = AsyncMock(return_value=GWEI)
        self.get_chain_id = AsyncMock(return_value=1)
        self.get_pending_nonce = AsyncMock(return_value=9)
        self.estimate_gas = AsyncMock(return_value=100_000)
        self.get_transaction_receipt = AsyncMock(
            return_value=receipt if receipt is not None else {"status": "0x1", "blockNumber": "0x65"}
        )
        self.close = AsyncMock()

        async def call(to, data, block="latest"):
            if data[:10] == encode_get_amounts_out(0, [])[:10]:
                return _hex(["uint256[]"], [[10**15, 5 * 10**20]])
            if data == encode_factory():
                return _hex(["address"], [FACTORY])
            if data[:10] == encode_get_pair(FACTORY, FACTORY)[:10]:
                return _hex(["address"], [PAIR])
            if data == encode_token0():
                return _hex(["address"], [weth])
            if data == encode_get_reserves():
                return _hex(["uint112", "uint112", "uint32"], [10**20, 5 * 10**22, 0])
            raise AssertionError(f"unexpected call {to} {data}")

        self.call = AsyncMock(side_effect=call)


class StubRelay:
    """Relay stub with scripted simulate/send outcomes."""

    def __init__(self, simulate=None, send=None):
        self.simulate = simulate or AsyncMock(return_value=SimulationResult(total_gas_used=210_000))
        self.send = send or AsyncMock(return_value=SendResult(bundle_hash="0xbundle"))
        self.close = AsyncMock()


def _pipeline(settings, run_context, chain=None, relay=None):
    return BundlePipeline(
        settings,
        chain=chain or PipelineChain(settings),
        relay=relay or StubRelay(),
        run_context=run_context,
        now=lambda: 1_700_000_000,
    )


class TestBundlePipeline:
    """Tests for stage ordering and outcome reporting."""

    @pytest.mark.asyncio
    async def test_happy_path(self, settings, run_context):
        relay = StubRelay()
        pipeline = _pipeline(settings, run_context, relay=relay)

        result = await pipeline.run()

        assert result.confirmed
        assert result.bundle_hash == "0xbundle"
        assert result.send_attempts == 1
        assert result.bundle.target_block_number == 101
        assert [tx.spec.nonce for tx in result.bundle.transactions] == [9, 10, 11]
        assert all(s.block_number == 101 for s in result.inclusion.statuses)
        relay.simulate.assert_awaited_once()
        relay.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_simulation_revert_aborts_before_send(self, settings, run_context):
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "results": [
                    {"gasUsed": 46000, "gasFees": "1"},
                    {"gasUsed": 30000, "gasFees": "1", "error": "execution reverted"},
                    {"gasUsed": 0, "gasFees": "0"},
                ]
            },
        }
        relay = StubRelay(simulate=AsyncMock(side_effect=lambda bundle: parse_simulation(payload)))
        pipeline = _pipeline(settings, run_context, relay=relay)

        with pytest.raises(SimulationError) as exc_info:
            await pipeline.run()

        assert exc_info.value.tx_index == 2
        assert "execution reverted" in str(exc_info.value)
        assert exc_info.value.bundle_sent is False
        relay.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_simulate_only_never_sends(self, settings, run_context):
        relay = StubRelay()
        pipeline = _pipeline(settings, run_context, relay=relay)

        result = await pipeline.run(simulate_only=True)

        assert not result.sent
        assert result.simulation.total_gas_used == 210_000
        relay.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_retries_then_succeeds(self, settings, run_context, fake_clock):
        send = AsyncMock(side_effect=[
            TransportError("connection reset"),
            SendResult(error_code=-32000, error_message="relay busy"),
            SendResult(bundle_hash="0xbundle"),
        ])
        pipeline = _pipeline(settings, run_context, relay=StubRelay(send=send))

        result = await pipeline.run()

        assert result.send_attempts == 3
        assert fake_clock.sleeps[:2] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_send_exhaustion(self, settings, run_context):
        send = AsyncMock(return_value=SendResult(error_code=-32000, error_message="relay busy"))
        pipeline = _pipeline(settings, run_context, relay=StubRelay(send=send))

        with pytest.raises(RetryExhaustedError, match="relay busy") as exc_info:
            await pipeline.run()

        assert send.await_count == 3
        assert exc_info.value.stage == PipelineStage.SUBMISSION

    @pytest.mark.asyncio
    async def test_inclusion_timeout_is_reported_as_sent(self, settings, run_context):
        settings = settings.model_copy(update={"inclusion_timeout_seconds": 3})
        chain = PipelineChain(settings, receipt={})
        pipeline = _pipeline(settings, run_context, chain=chain)

        with pytest.raises(InclusionTimeoutError) as exc_info:
            await pipeline.run()

        assert exc_info.value.included == 0
        assert exc_info.value.bundle_sent is True

    @pytest.mark.asyncio
    async def test_nonce_failure_is_tagged(self, settings, run_context):
        chain = PipelineChain(settings)
        chain.get_pending_nonce = AsyncMock(side_effect=ChainQueryError("boom", method="eth_getTransactionCount"))
        relay = StubRelay()
        pipeline = _pipeline(settings, run_context, chain=chain, relay=relay)

        with pytest.raises(ChainQueryError) as exc_info:
            await pipeline.run()

        assert exc_info.value.stage == PipelineStage.NONCE
        relay.simulate.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_run_does_nothing(self, settings, run_context):
        chain = PipelineChain(settings)
        pipeline = _pipeline(settings, run_context, chain=chain)
        run_context.cancel()

        with pytest.raises(CancellationError):
            await pipeline.run()

        chain.get_latest_block.assert_not_called()
