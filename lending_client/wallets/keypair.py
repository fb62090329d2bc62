"""Local keypair wallet."""
from __future__ import annotations

import json
import logging
from pathlib import Path

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..config import WalletConfig
from ..errors import ValidationError, WalletRejectedError

logger = logging.getLogger(__name__)


class KeypairWallet:
    """Sign requests with a keypair held in this process."""

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_file(cls, path: str | Path) -> KeypairWallet:
        """Load a Solana CLI keypair file (JSON array of 64 integers)."""
        path = Path(path).expanduser()
        if not path.exists():
            raise ValidationError(f"Keypair file not found: {path}")
        with open(path) as f:
            raw = json.load(f)
        return cls(Keypair.from_bytes(bytes(raw)))

    @classmethod
    def from_base58(cls, secret: str) -> KeypairWallet:
        return cls(Keypair.from_base58_string(secret))

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        required = tx.message.account_keys[: tx.message.header.num_required_signatures]
        if self.pubkey not in required:
            raise WalletRejectedError(
                f"Wallet {self.pubkey} is not a required signer of this request"
            )
        tx.partial_sign([self._keypair], tx.message.recent_blockhash)
        return tx


def load_wallet(config: WalletConfig) -> KeypairWallet:
    if config.secret_key:
        return KeypairWallet.from_base58(config.secret_key)
    if config.keypair_path:
        return KeypairWallet.from_file(config.keypair_path)
    return KeypairWallet.from_file(Path.home() / ".config" / "solana" / "id.json")
