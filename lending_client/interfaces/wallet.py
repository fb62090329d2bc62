"""Wallet protocol — signing abstraction."""
from typing import Protocol

from solders.pubkey import Pubkey
from solders.transaction import Transaction


class Wallet(Protocol):
    """Abstract interface for the caller's signing wallet.

    ``sign_transaction`` raises ``WalletRejectedError`` when the wallet
    declines to sign.
    """

    @property
    def pubkey(self) -> Pubkey: ...

    async def sign_transaction(self, tx: Transaction) -> Transaction: ...
