"""Private bundle submission for an approve, swap and add-liquidity sequence."""

__version__ = "0.1.0"
