"""Shared fixtures: virtual time, test keys and settings."""

import asyncio

import pytest

from flashbundle.config import Settings
from flashbundle.core.execution.signer import load_account
from flashbundle.core.recovery import RunContext

# Well-known development keys; never funded on mainnet
EOA_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
EOA_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SIGNER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
SIGNER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class FakeClock:
    """Monotonic clock whose sleep advances virtual time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def run_context(fake_clock):
    return RunContext(clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def settings(monkeypatch):
    for name in ("EOA_PRIVATE_KEY", "EOA_KEY", "FLASHBOTS_SIGNER_KEY", "FLASHBOTS_KEY", "TOKEN_ADDRESS"):
        monkeypatch.delenv(name, raising=False)
    return Settings(
        _env_file=None,
        eoa_private_key=EOA_KEY,
        flashbots_signer_key=SIGNER_KEY,
    )


@pytest.fixture
def eoa_account():
    return load_account(EOA_KEY)


@pytest.fixture
def auth_account():
    return load_account(SIGNER_KEY)
