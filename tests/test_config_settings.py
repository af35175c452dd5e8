import pytest
from decimal import Decimal
from pydantic import ValidationError

from flashbundle.config import PLACEHOLDER_EOA_KEY, Settings


KEY_VARS = ("EOA_PRIVATE_KEY", "EOA_KEY", "FLASHBOTS_SIGNER_KEY", "FLASHBOTS_KEY")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in KEY_VARS:
        monkeypatch.delenv(name, raising=False)


def test_eoa_key_alias(monkeypatch):
    """EOA key should load from the short alias when present."""

    monkeypatch.setenv("EOA_KEY", "0xabc")

    settings = Settings(_env_file=None)

    assert settings.eoa_private_key == "0xabc"


def test_eoa_key_direct_env(monkeypatch):
    """The full variable name remains the primary source."""

    monkeypatch.setenv("EOA_PRIVATE_KEY", "0xprimary")
    monkeypatch.setenv("EOA_KEY", "0xalias")

    settings = Settings(_env_file=None)

    assert settings.eoa_private_key == "0xprimary"


def test_has_keys_rejects_placeholders():
    settings = Settings(_env_file=None)

    assert settings.eoa_private_key == PLACEHOLDER_EOA_KEY
    assert not settings.has_keys
    assert Settings(_env_file=None, eoa_private_key="0x1", flashbots_signer_key="0x2").has_keys


def test_settings_are_frozen():
    settings = Settings(_env_file=None)

    with pytest.raises(ValidationError):
        settings.slippage = 0.5


def test_addresses_are_checksummed():
    settings = Settings(_env_file=None, token_address="0xf7285d17dded63a4480a0f1f0a8cc706f02dda0a")

    assert settings.token_address != settings.token_address.lower()
    assert settings.token_address.lower() == "0xf7285d17dded63a4480a0f1f0a8cc706f02dda0a"


def test_invalid_address_rejected():
    with pytest.raises(ValidationError, match="invalid address"):
        Settings(_env_file=None, router_address="0x1234")


@pytest.mark.parametrize("slippage", [-0.01, 1.0, 1.5])
def test_slippage_out_of_range(slippage):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, slippage=slippage)


def test_priority_bounds_must_be_ordered():
    with pytest.raises(ValidationError, match="min_priority_fee_gwei"):
        Settings(_env_file=None, min_priority_fee_gwei=Decimal("60"), max_priority_fee_gwei=Decimal("50"))


def test_unit_conversions():
    settings = Settings(_env_file=None, eth_amount=Decimal("0.002"))

    assert settings.eth_amount_wei == 2 * 10**15
    assert settings.min_priority_fee_wei == 2 * 10**9
    assert settings.max_priority_fee_wei == 50 * 10**9


def test_gas_limit_defaults_and_buffer():
    settings = Settings(_env_file=None)

    assert settings.default_gas_limit("approve") == 60_000
    assert settings.default_gas_limit("swap") == 300_000
    assert settings.default_gas_limit("add_liquidity") == 400_000
    assert settings.default_gas_limit("unknown") == 200_000
    assert settings.buffered(100_000) == 130_000
