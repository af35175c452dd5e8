"""
Tests for transaction and relay-request signing.
"""

import re

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_hex

from flashbundle.core.execution.models import DynamicGas, LegacyGas, OperationType, TransactionSpec
from flashbundle.core.execution.signer import sign_relay_payload, sign_transaction

HEADER_PATTERN = re.compile(r"^(0x[0-9a-fA-F]{40}):0x([0-9a-f]{130})$")
BODY = b'{"jsonrpc":"2.0","id":1,"method":"eth_sendBundle","params":[{"txs":["0x01"],"blockNumber":"0x10"}]}'


def _spec(gas_params, nonce=7):
    return TransactionSpec(
        operation=OperationType.APPROVE,
        nonce=nonce,
        to="0xF7285d17dded63A4480A0f1F0a8cc706F02dDa0a".lower(),
        value=0,
        data="0x095ea7b3",
        gas_limit=78_000,
        gas_params=gas_params,
        chain_id=1,
    )


class TestRelaySignature:
    """Tests for the X-Flashbots-Signature header value."""

    def test_header_shape_and_recovery_byte(self, auth_account):
        header = sign_relay_payload(BODY, auth_account)

        match = HEADER_PATTERN.match(header)
        assert match is not None
        assert match.group(1) == auth_account.address
        assert int(match.group(2)[-2:], 16) in (27, 28)

    def test_signature_recovers_signer_over_hex_hash(self, auth_account):
        header = sign_relay_payload(BODY, auth_account)
        signature = header.split(":", 1)[1]

        message = encode_defunct(text=to_hex(keccak(BODY)))
        assert Account.recover_message(message, signature=signature) == auth_account.address

    def test_signature_changes_with_body(self, auth_account):
        assert sign_relay_payload(BODY, auth_account) != sign_relay_payload(BODY + b" ", auth_account)


class TestTransactionSigning:
    """Tests for legacy vs. type-2 encodings."""

    def test_dynamic_gas_produces_type2(self, eoa_account):
        signed = sign_transaction(_spec(DynamicGas(max_fee_per_gas=40 * 10**9, max_priority_fee_per_gas=2 * 10**9)), eoa_account)

        assert signed.raw[0] == 2
        assert signed.raw_hex.startswith("0x02")
        assert signed.hash.startswith("0x") and len(signed.hash) == 66
        assert signed.spec.nonce == 7

    def test_legacy_gas_produces_untyped(self, eoa_account):
        signed = sign_transaction(_spec(LegacyGas(price=30 * 10**9)), eoa_account)

        # RLP list prefix, not a type byte
        assert signed.raw[0] >= 0xC0

    def test_spec_dict_never_mixes_pricing(self):
        legacy = _spec(LegacyGas(price=1)).to_dict()
        dynamic = _spec(DynamicGas(max_fee_per_gas=2, max_priority_fee_per_gas=1)).to_dict()

        assert "gasPrice" in legacy and "maxFeePerGas" not in legacy
        assert "maxFeePerGas" in dynamic and "gasPrice" not in dynamic
        assert dynamic["type"] == 2
