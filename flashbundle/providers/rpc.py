"""Async JSON-RPC client for the chain endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.recovery.errors import ChainQueryError
from ..services.evm import from_hex_quantity


logger = logging.getLogger(__name__)


class ChainClient:
    """
    Read-only chain access used by every pipeline stage.

    Transport failures and JSON-RPC error objects both surface as
    ``ChainQueryError`` naming the method; callers decide whether that is
    fatal for their stage.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the chain."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChainQueryError(f"{method} failed: {e}", method=method) from e

        if not isinstance(result, dict):
            raise ChainQueryError(f"{method} returned unexpected payload: {result!r}", method=method)

        if result.get("error"):
            error = result["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ChainQueryError(f"{method} RPC error: {message}", method=method)

        return result.get("result")

    async def get_latest_block(self) -> Dict[str, Any]:
        block = await self._rpc_call("eth_getBlockByNumber", ["latest", False])
        if not block:
            raise ChainQueryError("latest block not available", method="eth_getBlockByNumber")
        return block

    async def get_chain_id(self) -> int:
        return from_hex_quantity(await self._rpc_call("eth_chainId", []))

    async def get_pending_nonce(self, address: str) -> int:
        return from_hex_quantity(await self._rpc_call("eth_getTransactionCount", [address, "pending"]))

    async def get_gas_price(self) -> int:
        return from_hex_quantity(await self._rpc_call("eth_gasPrice", []))

    async def get_max_priority_fee(self) -> int:
        return from_hex_quantity(await self._rpc_call("eth_maxPriorityFeePerGas", []))

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call and return the raw hex result."""
        return await self._rpc_call("eth_call", [{"to": to, "data": data}, block])

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        call_obj = {key: (hex(value) if isinstance(value, int) else value) for key, value in tx.items()}
        estimate = await self._rpc_call("eth_estimateGas", [call_obj])
        if estimate is None:
            raise ChainQueryError("eth_estimateGas returned no estimate", method="eth_estimateGas")
        return from_hex_quantity(estimate)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Return the receipt, or None while the transaction is unmined."""
        receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        if receipt is not None and not isinstance(receipt, dict):
            raise ChainQueryError(
                f"eth_getTransactionReceipt returned unexpected result: {receipt!r}",
                method="eth_getTransactionReceipt",
            )
        return receipt

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
