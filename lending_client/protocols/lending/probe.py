"""Account existence probe."""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from solders.pubkey import Pubkey

from ...interfaces.chain import ChainClient
from ...models import Absent, Present, ProbeResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountProbe:
    """Fetch and decode a remote account without mutating anything.

    "Not found" is reported as ``Absent``. An account that exists but fails to
    decode raises ``AccountDecodeError``, and RPC failures propagate unchanged.
    """

    def __init__(self, client: ChainClient) -> None:
        self._client = client

    async def probe(
        self, address: Pubkey, decoder: Callable[[Pubkey, bytes], T]
    ) -> ProbeResult[T]:
        raw = await self._client.get_account_info(address)
        if raw is None:
            logger.debug("Account %s is absent", address)
            return Absent(address)
        return Present(address, decoder(address, raw))

    async def exists(self, address: Pubkey) -> bool:
        """Raw presence check for accounts this client does not decode."""
        return await self._client.get_account_info(address) is not None
