"""Async client for a Flashbots-style bundle relay."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from eth_account.signers.local import LocalAccount

from ..core.execution.models import Bundle, SendResult, SimulationResult, TransactionSimulation
from ..core.execution.signer import sign_relay_payload
from ..core.recovery.errors import (
    PipelineStage,
    RelayProtocolError,
    SimulationError,
    TransportError,
)
from ..services.evm import to_hex_quantity, wei_to_eth


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Flashbots-Signature"


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    try:
        return int(text, 16) if text.startswith("0x") else int(text)
    except ValueError:
        # Summary fields are informational; a malformed one reads as zero
        return 0


def parse_simulation(payload: Dict[str, Any]) -> SimulationResult:
    """
    Turn a simulate response into a summary, or raise.

    Raises:
        SimulationError: top-level relay error, or the first transaction
            carrying an execution error (index is 1-based)
    """
    error = payload.get("error")
    if error:
        message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
        code = error.get("code") if isinstance(error, dict) else None
        raise SimulationError(f"bundle simulation returned an error: {message}", code=code)

    result = payload.get("result") or {}
    results: List[TransactionSimulation] = []
    for index, item in enumerate(result.get("results") or [], start=1):
        tx = TransactionSimulation(
            index=index,
            tx_hash=item.get("txHash"),
            gas_used=_to_int(item.get("gasUsed")),
            gas_fees=_to_int(item.get("gasFees")),
            error=item.get("error") or None,
            revert=item.get("revert") or None,
        )
        if not tx.is_success:
            detail = f"{tx.error} - {tx.revert}" if tx.revert else tx.error
            raise SimulationError(
                f"transaction {index} simulation error: {detail}",
                tx_index=index,
                revert_reason=tx.revert or tx.error,
            )
        results.append(tx)

    coinbase_diff = result.get("coinbaseDiff")
    return SimulationResult(
        results=results,
        total_gas_used=_to_int(result.get("totalGasUsed")) or sum(tx.gas_used for tx in results),
        coinbase_diff=_to_int(coinbase_diff) if coinbase_diff is not None else None,
        bundle_hash=result.get("bundleHash"),
        raw_response=payload,
    )


def parse_send(payload: Dict[str, Any]) -> SendResult:
    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            return SendResult(
                error_code=error.get("code"),
                error_message=error.get("message", "unknown error"),
                raw_response=payload,
            )
        return SendResult(error_message=str(error), raw_response=payload)

    result = payload.get("result") or {}
    return SendResult(bundle_hash=result.get("bundleHash"), raw_response=payload)


def send_error(result: SendResult) -> Optional[RelayProtocolError]:
    """Protocol error carried by a delivered send response, if any."""
    if result.is_success:
        return None
    message = result.error_message or "response carried no bundle hash"
    return RelayProtocolError(f"flashbots error: {message}", code=result.error_code)


class BundleProtocolClient:
    """
    Signs and posts simulate/send requests to the relay.

    Every request carries an ``X-Flashbots-Signature`` header computed over
    the exact body bytes, signed with the relay identity key (never the EOA).
    """

    def __init__(
        self,
        relay_url: str,
        auth_account: LocalAccount,
        *,
        simulate_method: str = "eth_callBundle",
        send_method: str = "eth_sendBundle",
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.relay_url = relay_url
        self.auth_account = auth_account
        self.simulate_method = simulate_method
        self.send_method = send_method
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @staticmethod
    def encode_request(method: str, params: Dict[str, Any]) -> bytes:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": [params],
        }
        return json.dumps(payload, separators=(",", ":")).encode()

    def _headers(self, body: bytes) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            SIGNATURE_HEADER: sign_relay_payload(body, self.auth_account),
        }

    async def _post(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """POST a signed request; raises TransportError when no JSON body comes back."""
        body = self.encode_request(method, params)

        try:
            response = await self._client.post(self.relay_url, content=body, headers=self._headers(body))
        except httpx.HTTPError as e:
            raise TransportError(f"failed to send request: {e}", stage=PipelineStage.SUBMISSION) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(
                f"relay returned HTTP {response.status_code} with unparseable body",
                stage=PipelineStage.SUBMISSION,
                details={"status_code": response.status_code},
            ) from e

        if not isinstance(payload, dict):
            raise TransportError(
                f"relay returned unexpected payload: {payload!r}",
                stage=PipelineStage.SUBMISSION,
            )
        # Relays report protocol errors with non-2xx codes and a JSON-RPC body
        if response.is_error and not payload.get("error"):
            raise TransportError(
                f"relay returned HTTP {response.status_code}",
                stage=PipelineStage.SUBMISSION,
                details={"status_code": response.status_code},
            )
        return payload

    async def simulate(self, bundle: Bundle) -> SimulationResult:
        """
        Simulate the bundle against latest state for its target block.

        Any failure, including transport, is terminal: the bundle is not sent.
        """
        params = {
            "txs": bundle.raw_transactions,
            "blockNumber": to_hex_quantity(bundle.target_block_number),
            "stateBlockNumber": "latest",
        }
        try:
            payload = await self._post(self.simulate_method, params)
        except TransportError as e:
            raise SimulationError(f"bundle simulation request failed: {e}") from e

        result = parse_simulation(payload)
        for tx in result.results:
            logger.info(f"Simulated tx {tx.index}: gas used {tx.gas_used}, gas fees {wei_to_eth(tx.gas_fees)} ETH")
        return result

    async def send(self, bundle: Bundle) -> SendResult:
        params = {
            "txs": bundle.raw_transactions,
            "blockNumber": to_hex_quantity(bundle.target_block_number),
        }
        return parse_send(await self._post(self.send_method, params))

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
