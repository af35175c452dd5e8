"""
Transaction and relay-request signing.
"""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_hex

from .models import SignedTransaction, TransactionSpec


def load_account(private_key: str) -> LocalAccount:
    return Account.from_key(private_key)


def sign_transaction(spec: TransactionSpec, account: LocalAccount) -> SignedTransaction:
    """Sign a spec as a legacy EIP-155 or type-2 transaction, per its gas params."""
    signed = account.sign_transaction(spec.to_dict())
    return SignedTransaction(
        spec=spec,
        raw=bytes(signed.raw_transaction),
        hash=to_hex(signed.hash),
    )


def sign_relay_payload(body: bytes, account: LocalAccount) -> str:
    """
    Build the ``X-Flashbots-Signature`` header value for a request body.

    The relay expects a personal-message signature over the ``0x`` hex of
    keccak(body), with the recovery id in the 27/28 range. The header binds
    to the exact bytes sent, so it has to be recomputed for every request.
    """
    body_hash = to_hex(keccak(body))
    signed = account.sign_message(encode_defunct(text=body_hash))

    signature = bytearray(bytes(signed.signature))
    if signature[64] < 27:
        signature[64] += 27

    return f"{account.address}:0x{bytes(signature).hex()}"
