"""Build, sign, send and confirm instruction bundles."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction

from ..errors import TransactionError
from ..interfaces.chain import ChainClient
from ..interfaces.wallet import Wallet

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Submit one atomic request paid for and signed by the caller's wallet."""

    def __init__(self, client: ChainClient, wallet: Wallet) -> None:
        self._client = client
        self._wallet = wallet

    async def submit(
        self,
        instructions: Sequence[Instruction],
        extra_signers: Sequence[Keypair] = (),
    ) -> Signature:
        blockhash, last_valid_block_height = await self._client.get_latest_blockhash()
        message = Message.new_with_blockhash(
            list(instructions), self._wallet.pubkey, blockhash
        )
        tx = Transaction.new_unsigned(message)
        if extra_signers:
            tx.partial_sign(list(extra_signers), blockhash)
        tx = await self._wallet.sign_transaction(tx)

        try:
            signature = await self._client.send_transaction(tx)
            await self._client.confirm_transaction(signature, last_valid_block_height)
        except TransactionError as e:
            logger.error("Transaction failed: %s", e)
            for line in e.logs:
                logger.error("  %s", line)
            raise

        logger.info("Transaction confirmed: %s", signature)
        return signature
