"""
Fee parameter derivation from current chain conditions.
"""

import logging
from typing import Optional

from ...config import Settings
from ...providers.rpc import ChainClient
from ...services.evm import from_hex_quantity, scale, wei_to_gwei
from ..recovery.errors import ChainQueryError, PipelineStage
from .models import ChainFeeSnapshot, DynamicGas, GasParams, LegacyGas


logger = logging.getLogger(__name__)


def derive_gas_params(snapshot: ChainFeeSnapshot, settings: Settings) -> GasParams:
    """
    Turn a fee snapshot into transaction pricing.

    Without a base fee the chain predates the fee market, so the suggested
    legacy price is bumped by ``legacy_gas_price_multiplier``. Otherwise the
    tip (or the minimum when no suggestion is available) is multiplied,
    clamped to the configured bounds, and added to the scaled base fee.
    """
    if snapshot.base_fee is None:
        return LegacyGas(price=scale(snapshot.suggested_legacy_price, settings.legacy_gas_price_multiplier))

    min_tip = settings.min_priority_fee_wei
    max_tip = settings.max_priority_fee_wei

    suggested = snapshot.suggested_priority_fee
    if suggested is None:
        suggested = min_tip

    priority_fee = scale(suggested, settings.priority_fee_multiplier)
    priority_fee = max(min_tip, min(priority_fee, max_tip))

    max_fee = scale(snapshot.base_fee, settings.base_fee_multiplier) + priority_fee
    return DynamicGas(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)


class FeeOracle:
    """Reads fee conditions from the chain head and derives GasParams."""

    def __init__(self, chain: ChainClient, settings: Settings):
        self.chain = chain
        self.settings = settings

    async def fetch_snapshot(self) -> ChainFeeSnapshot:
        try:
            header = await self.chain.get_latest_block()
        except ChainQueryError as e:
            raise ChainQueryError(
                f"failed to get latest block header: {e}",
                method=e.method,
                stage=PipelineStage.FEES,
            ) from e

        base_fee = from_hex_quantity(header.get("baseFeePerGas"))
        head_number = from_hex_quantity(header.get("number")) or 0

        if base_fee is None:
            try:
                legacy_price = await self.chain.get_gas_price()
            except ChainQueryError as e:
                raise ChainQueryError(
                    f"failed to get legacy gas price: {e}",
                    method=e.method,
                    stage=PipelineStage.FEES,
                ) from e
            return ChainFeeSnapshot(
                suggested_legacy_price=legacy_price,
                head_number=head_number,
            )

        tip: Optional[int]
        try:
            tip = await self.chain.get_max_priority_fee()
        except ChainQueryError as e:
            logger.warning(f"Priority fee suggestion unavailable, using minimum: {e}")
            tip = None

        return ChainFeeSnapshot(
            suggested_legacy_price=0,
            suggested_priority_fee=tip,
            base_fee=base_fee,
            head_number=head_number,
        )

    async def get_gas_params(self) -> GasParams:
        snapshot = await self.fetch_snapshot()
        params = derive_gas_params(snapshot, self.settings)

        if isinstance(params, LegacyGas):
            logger.info(f"Legacy gas pricing: {wei_to_gwei(params.price):.2f} gwei")
        else:
            logger.info(
                f"Gas market analysis: base fee {wei_to_gwei(snapshot.base_fee):.2f} gwei, "
                f"priority fee {wei_to_gwei(params.max_priority_fee_per_gas):.2f} gwei, "
                f"max fee {wei_to_gwei(params.max_fee_per_gas):.2f} gwei"
            )
        return params
