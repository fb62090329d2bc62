"""Test-network token faucet: mint to the operator, then transfer to the caller."""
from __future__ import annotations

import logging

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    create_associated_token_account,
    mint_to,
    transfer,
)
from spl.token.models import MintToParams, TransferParams

from ..errors import LendingClientError, OperationFailed, classify, user_message
from ..interfaces.chain import ChainClient
from ..interfaces.wallet import Wallet
from ..models import OperationResult, OperationState
from ..protocols.lending import instructions
from ..protocols.lending.addresses import token_account
from ..protocols.lending.probe import AccountProbe
from ..wallets.operator import OperatorCapability
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)


class ManualTokenFaucet:
    """Mint test tokens to the caller in a single atomic request.

    The bundle holds up to two token-account creations, a mint into the
    operator's account and a transfer to the caller. The ledger applies all
    of it or none of it. The operator capability must be passed in
    explicitly and is refused on production clusters.
    """

    def __init__(
        self, client: ChainClient, wallet: Wallet, operator: OperatorCapability
    ) -> None:
        self._wallet = wallet
        self._operator = operator
        self._probe = AccountProbe(client)
        self._submitter = TransactionSubmitter(client, wallet)

    async def build_instructions(self, mint: Pubkey, amount: int) -> list[Instruction]:
        instructions.encode_amount(amount)
        caller = self._wallet.pubkey
        operator = self._operator.pubkey
        caller_account = token_account(caller, mint)
        operator_account = token_account(operator, mint)

        bundle: list[Instruction] = []
        if not await self._probe.exists(caller_account):
            logger.info("Creating token account %s for caller", caller_account)
            bundle.append(create_associated_token_account(caller, caller, mint))
        if not await self._probe.exists(operator_account):
            logger.info("Creating token account %s for operator", operator_account)
            bundle.append(create_associated_token_account(operator, operator, mint))

        bundle.append(
            mint_to(
                MintToParams(
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint,
                    dest=operator_account,
                    mint_authority=operator,
                    amount=amount,
                )
            )
        )
        bundle.append(
            transfer(
                TransferParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=operator_account,
                    dest=caller_account,
                    owner=operator,
                    amount=amount,
                )
            )
        )
        return bundle

    async def mint(self, mint: Pubkey, amount: int) -> OperationResult:
        """Mint ``amount`` smallest units of ``mint`` to the caller."""
        try:
            bundle = await self.build_instructions(mint, amount)
            signature = await self._submitter.submit(
                bundle, extra_signers=[self._operator.keypair]
            )
        except LendingClientError as e:
            classification = classify(e)
            logger.error("Mint failed: %s", user_message(classification, "Mint"))
            raise OperationFailed("mint_tokens", "primary", classification) from e

        logger.info("Minted %d of %s to %s", amount, mint, self._wallet.pubkey)
        return OperationResult(
            "mint_tokens",
            signature,
            (OperationState.START, OperationState.PRIMARY_SUBMITTED, OperationState.SUCCEEDED),
        )
