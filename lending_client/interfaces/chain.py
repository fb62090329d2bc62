"""Chain client protocol — ledger RPC abstraction."""
from typing import Any, Protocol

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction


class ChainClient(Protocol):
    """Abstract interface for ledger RPC interactions."""

    async def get_account_info(self, address: Pubkey) -> bytes | None: ...

    async def get_program_accounts(
        self, program_id: Pubkey, filters: list[dict[str, Any]] | None = None
    ) -> list[tuple[Pubkey, bytes]]: ...

    async def get_latest_blockhash(self) -> tuple[Hash, int]: ...

    async def send_transaction(self, tx: Transaction) -> Signature: ...

    async def confirm_transaction(
        self, signature: Signature, last_valid_block_height: int
    ) -> None: ...
