"""Integration tests for the test-network token faucet."""
from __future__ import annotations

import pytest
from solders.keypair import Keypair
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from lending_client.errors import ErrorKind, OperationFailed, TransactionError
from lending_client.models import OperationState
from lending_client.protocols.lending.addresses import token_account
from lending_client.services.faucet import ManualTokenFaucet
from lending_client.wallets.keypair import KeypairWallet
from lending_client.wallets.operator import OperatorCapability
from tests.fakes import USDC_MINT, FakeLedger


@pytest.fixture()
def operator() -> OperatorCapability:
    return OperatorCapability(Keypair(), "devnet")


@pytest.fixture()
def faucet(
    ledger: FakeLedger, wallet: KeypairWallet, operator: OperatorCapability
) -> ManualTokenFaucet:
    return ManualTokenFaucet(ledger, wallet, operator)


class TestBuildInstructions:
    @pytest.mark.asyncio
    async def test_creates_missing_token_accounts(self, faucet: ManualTokenFaucet) -> None:
        bundle = await faucet.build_instructions(USDC_MINT, 1_000_000)

        programs = [ix.program_id for ix in bundle]
        assert programs == [
            ASSOCIATED_TOKEN_PROGRAM_ID,
            ASSOCIATED_TOKEN_PROGRAM_ID,
            TOKEN_PROGRAM_ID,
            TOKEN_PROGRAM_ID,
        ]

    @pytest.mark.asyncio
    async def test_existing_accounts_only_mint_and_transfer(
        self,
        faucet: ManualTokenFaucet,
        ledger: FakeLedger,
        wallet: KeypairWallet,
        operator: OperatorCapability,
    ) -> None:
        ledger.accounts[token_account(wallet.pubkey, USDC_MINT)] = bytes(165)
        ledger.accounts[token_account(operator.pubkey, USDC_MINT)] = bytes(165)

        bundle = await faucet.build_instructions(USDC_MINT, 1_000_000)

        assert len(bundle) == 2
        assert all(ix.program_id == TOKEN_PROGRAM_ID for ix in bundle)


class TestMint:
    @pytest.mark.asyncio
    async def test_mint_is_one_request(
        self,
        faucet: ManualTokenFaucet,
        ledger: FakeLedger,
        wallet: KeypairWallet,
    ) -> None:
        ledger.accounts[token_account(wallet.pubkey, USDC_MINT)] = bytes(165)

        result = await faucet.mint(USDC_MINT, 1_000_000)

        assert ledger.submitted == [["create_token_account", "mint_to", "transfer"]]
        assert result.operation == "mint_tokens"
        assert result.states == (
            OperationState.START,
            OperationState.PRIMARY_SUBMITTED,
            OperationState.SUCCEEDED,
        )

    @pytest.mark.asyncio
    async def test_missing_mint_authority(
        self, faucet: ManualTokenFaucet, ledger: FakeLedger
    ) -> None:
        ledger.fail_on["mint_to"] = TransactionError(
            "Transaction simulation failed: Error processing Instruction 2: custom program error: 0x4",
            ["Program log: Instruction: MintTo", "Program log: Error: owner does not match"],
        )

        with pytest.raises(OperationFailed) as exc_info:
            await faucet.mint(USDC_MINT, 1_000_000)

        assert exc_info.value.kind is ErrorKind.INSUFFICIENT_RESOURCE
        assert exc_info.value.classification.reason == "missing_privilege"
        # All-or-nothing: no token account was created either
        assert ledger.submitted == []
        assert ledger.accounts == {}

    @pytest.mark.asyncio
    async def test_zero_amount(self, faucet: ManualTokenFaucet, ledger: FakeLedger) -> None:
        with pytest.raises(OperationFailed) as exc_info:
            await faucet.mint(USDC_MINT, 0)

        assert exc_info.value.kind is ErrorKind.VALIDATION_FAILURE
        assert ledger.reads == []
