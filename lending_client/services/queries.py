"""Cached read queries over lending program accounts."""
from __future__ import annotations

import base64
import logging

from solders.pubkey import Pubkey

from ..interfaces.chain import ChainClient
from ..models import Bank, Present, UserAccount
from ..protocols.lending.addresses import AddressDeriver
from ..protocols.lending.parser import (
    BANK_DISCRIMINATOR,
    USER_DISCRIMINATOR,
    decode_bank,
    decode_user,
)
from ..protocols.lending.probe import AccountProbe
from .cache import BANKS, USERS, QueryCache

logger = logging.getLogger(__name__)


def _discriminator_filter(discriminator: bytes) -> dict:
    return {
        "memcmp": {
            "offset": 0,
            "bytes": base64.b64encode(discriminator).decode("ascii"),
            "encoding": "base64",
        }
    }


class LendingQueries:
    """Bank and user reads, served through a ``QueryCache``."""

    def __init__(
        self,
        client: ChainClient,
        deriver: AddressDeriver,
        cache: QueryCache,
        cluster: str,
    ) -> None:
        self._client = client
        self._deriver = deriver
        self._probe = AccountProbe(client)
        self._cache = cache
        self._cluster = cluster

    def _decode_bank(self, address: Pubkey, data: bytes) -> Bank:
        return decode_bank(address, data, self._deriver.treasury)

    async def banks(self) -> list[Bank]:
        async def load() -> list[Bank]:
            accounts = await self._client.get_program_accounts(
                self._deriver.program_id, [_discriminator_filter(BANK_DISCRIMINATOR)]
            )
            logger.info("Loaded %d bank accounts", len(accounts))
            return [self._decode_bank(address, data) for address, data in accounts]

        return await self._cache.get_or_load(BANKS, (self._cluster,), load)

    async def users(self) -> list[UserAccount]:
        async def load() -> list[UserAccount]:
            accounts = await self._client.get_program_accounts(
                self._deriver.program_id, [_discriminator_filter(USER_DISCRIMINATOR)]
            )
            logger.info("Loaded %d user accounts", len(accounts))
            return [decode_user(address, data) for address, data in accounts]

        return await self._cache.get_or_load(USERS, (self._cluster,), load)

    async def bank(self, mint: Pubkey) -> Bank | None:
        async def load() -> Bank | None:
            result = await self._probe.probe(self._deriver.bank(mint), self._decode_bank)
            return result.data if isinstance(result, Present) else None

        return await self._cache.get_or_load(BANKS, (self._cluster, str(mint)), load)

    async def user(self, owner: Pubkey) -> UserAccount | None:
        async def load() -> UserAccount | None:
            result = await self._probe.probe(self._deriver.user(owner), decode_user)
            return result.data if isinstance(result, Present) else None

        return await self._cache.get_or_load(USERS, (self._cluster, str(owner)), load)
