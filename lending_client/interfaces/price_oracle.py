"""Price oracle protocol — price feed abstraction."""
from typing import Protocol

from solders.pubkey import Pubkey


class PriceOracle(Protocol):
    """Abstract interface for price data and on-chain price accounts."""

    async def fetch_prices(self, symbols: list[str] | None = None) -> dict[str, float]: ...

    async def price_account(self, feed_id: str) -> Pubkey: ...
