"""
Uniswap V2 calldata encoding and read-only quoting.

Calldata is built with eth-abi against fixed function signatures; the
quoter only issues ``eth_call`` requests and never signs anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ..core.recovery.errors import ChainQueryError, RouteError, SequencingError
from ..providers.rpc import ChainClient


logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

APPROVE_SIGNATURE = "approve(address,uint256)"
GET_AMOUNTS_OUT_SIGNATURE = "getAmountsOut(uint256,address[])"
SWAP_EXACT_ETH_SIGNATURE = "swapExactETHForTokens(uint256,address[],address,uint256)"
ADD_LIQUIDITY_ETH_SIGNATURE = "addLiquidityETH(address,uint256,uint256,uint256,address,uint256)"
FACTORY_SIGNATURE = "factory()"
GET_PAIR_SIGNATURE = "getPair(address,address)"
TOKEN0_SIGNATURE = "token0()"
GET_RESERVES_SIGNATURE = "getReserves()"


def _calldata(signature: str, types: Sequence[str] = (), args: Sequence = ()) -> str:
    selector = function_signature_to_4byte_selector(signature)
    encoded = abi_encode(list(types), list(args)) if types else b""
    return "0x" + (selector + encoded).hex()


def _result_bytes(result: str) -> bytes:
    if not result or result == "0x":
        return b""
    return bytes.fromhex(result[2:] if result.startswith("0x") else result)


def encode_approve(spender: str, amount: int) -> str:
    return _calldata(APPROVE_SIGNATURE, ["address", "uint256"], [spender, amount])


def encode_get_amounts_out(amount_in: int, path: Sequence[str]) -> str:
    return _calldata(GET_AMOUNTS_OUT_SIGNATURE, ["uint256", "address[]"], [amount_in, list(path)])


def encode_swap_exact_eth_for_tokens(amount_out_min: int, path: Sequence[str], to: str, deadline: int) -> str:
    return _calldata(
        SWAP_EXACT_ETH_SIGNATURE,
        ["uint256", "address[]", "address", "uint256"],
        [amount_out_min, list(path), to, deadline],
    )


def encode_add_liquidity_eth(
    token: str,
    amount_token_desired: int,
    amount_token_min: int,
    amount_eth_min: int,
    to: str,
    deadline: int,
) -> str:
    return _calldata(
        ADD_LIQUIDITY_ETH_SIGNATURE,
        ["address", "uint256", "uint256", "uint256", "address", "uint256"],
        [token, amount_token_desired, amount_token_min, amount_eth_min, to, deadline],
    )


def encode_factory() -> str:
    return _calldata(FACTORY_SIGNATURE)


def encode_get_pair(token_a: str, token_b: str) -> str:
    return _calldata(GET_PAIR_SIGNATURE, ["address", "address"], [token_a, token_b])


def encode_token0() -> str:
    return _calldata(TOKEN0_SIGNATURE)


def encode_get_reserves() -> str:
    return _calldata(GET_RESERVES_SIGNATURE)


def decode_amounts(result: str) -> List[int]:
    (amounts,) = abi_decode(["uint256[]"], _result_bytes(result))
    return list(amounts)


def decode_address(result: str) -> str:
    (address,) = abi_decode(["address"], _result_bytes(result))
    return to_checksum_address(address)


def decode_reserves(result: str) -> Tuple[int, int, int]:
    reserve0, reserve1, timestamp = abi_decode(["uint112", "uint112", "uint32"], _result_bytes(result))
    return reserve0, reserve1, timestamp


@dataclass(frozen=True)
class PoolReserves:
    """Reserves of a WETH/token pair, oriented by asset."""
    pair_address: str
    eth_reserve: int
    token_reserve: int


class RouterQuoter:
    """Read-only router and pair lookups over a ChainClient."""

    def __init__(self, chain: ChainClient, router_address: str, weth_address: str):
        self.chain = chain
        self.router_address = router_address
        self.weth_address = weth_address

    async def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> int:
        """Return the final output amount for ``amount_in`` along ``path``."""
        try:
            result = await self.chain.call(self.router_address, encode_get_amounts_out(amount_in, path))
            amounts = decode_amounts(result)
        except (ChainQueryError, DecodingError) as e:
            raise RouteError(f"failed to get expected token amount: {e}") from e

        if len(amounts) < 2:
            raise RouteError(f"invalid amounts returned: expected at least 2, got {len(amounts)}")
        return amounts[-1]

    async def get_pool(self, token_address: str) -> PoolReserves:
        """
        Resolve the WETH/token pair and its reserves.

        Raises:
            SequencingError: pair missing, unreadable, or holding no liquidity
        """
        try:
            factory = decode_address(await self.chain.call(self.router_address, encode_factory()))
            pair = decode_address(
                await self.chain.call(factory, encode_get_pair(self.weth_address, token_address))
            )
            if pair == ZERO_ADDRESS:
                raise SequencingError("pair does not exist", token=token_address)

            token0 = decode_address(await self.chain.call(pair, encode_token0()))
            reserve0, reserve1, _ = decode_reserves(await self.chain.call(pair, encode_get_reserves()))
        except (ChainQueryError, DecodingError) as e:
            raise SequencingError(f"failed to read pool state: {e}", token=token_address) from e

        if token0.lower() == self.weth_address.lower():
            eth_reserve, token_reserve = reserve0, reserve1
        else:
            eth_reserve, token_reserve = reserve1, reserve0

        if eth_reserve == 0 or token_reserve == 0:
            raise SequencingError("pool has no liquidity", pair=pair)

        logger.debug(f"Pool {pair}: eth reserve {eth_reserve}, token reserve {token_reserve}")
        return PoolReserves(pair_address=pair, eth_reserve=eth_reserve, token_reserve=token_reserve)
