"""Pyth Network price oracle service."""
import logging
import ssl

import aiohttp
import certifi
from solders.pubkey import Pubkey

from ..config import PythConfig
from ..errors import ValidationError

logger = logging.getLogger(__name__)


def _feed_id_bytes(feed_id: str) -> bytes:
    hex_id = feed_id[2:] if feed_id.startswith("0x") else feed_id
    try:
        raw = bytes.fromhex(hex_id)
    except ValueError:
        raise ValidationError(f"Price feed id is not hex: {feed_id!r}") from None
    if len(raw) != 32:
        raise ValidationError(f"Price feed id must be 32 bytes, got {len(raw)}")
    return raw


class PythOracle:
    """Fetch prices from Pyth Network and locate on-chain price accounts."""

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.price_feeds = dict(config.feeds)
        self.receiver_program_id = Pubkey.from_string(config.receiver_program_id)
        self.shard_id = config.shard_id

    async def price_account(self, feed_id: str) -> Pubkey:
        """Address of the push-oracle price update account for a feed."""
        seeds = [self.shard_id.to_bytes(2, "little"), _feed_id_bytes(feed_id)]
        address, _bump = Pubkey.find_program_address(seeds, self.receiver_program_id)
        logger.info("Price feed account for %s: %s", feed_id, address)
        return address

    async def fetch_prices(self, symbols: list[str] | None = None) -> dict[str, float]:
        """Fetch current prices from Pyth Network.

        Args:
            symbols: Optional list of symbols to fetch. If None, fetches all
                     configured feeds.
        """
        prices: dict[str, float] = {}

        feeds = self.price_feeds
        if symbols is not None:
            feeds = {k: v for k, v in self.price_feeds.items() if k in symbols}

        feed_ids = list(set(feeds.values()))
        if not feed_ids:
            return prices

        query_params = "&".join([f"ids[]={fid}" for fid in feed_ids])
        url = f"{self.hermes_url}?{query_params}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        return prices

                    data = await response.json()
                    parsed = data.get("parsed", [])

                    # Hermes returns ids without the 0x prefix
                    id_to_assets: dict[str, list[str]] = {}
                    for asset, feed_id in feeds.items():
                        id_to_assets.setdefault(feed_id.removeprefix("0x"), []).append(asset)

                    for item in parsed:
                        feed_id = item.get("id", "").removeprefix("0x")
                        price_data = item.get("price", {})
                        price_raw = int(price_data.get("price", 0))
                        expo = int(price_data.get("expo", 0))

                        price = price_raw * (10**expo)

                        for asset in id_to_assets.get(feed_id, []):
                            prices[asset] = price

                    logger.info("Fetched prices from Pyth Network:")
                    for asset, price in sorted(prices.items()):
                        logger.info("  %s: $%.4f", asset, price)

        except (aiohttp.ClientError, OSError, ValueError) as e:
            logger.error("Error fetching prices from Pyth: %s", e)

        return prices
