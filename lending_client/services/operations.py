"""Operation orchestration — provision dependencies, then submit the primary request."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..config import BORROW_PRICE_FEED_ID, AppConfig
from ..errors import (
    AlreadyExistsError,
    Classification,
    ErrorKind,
    LendingClientError,
    OperationCancelled,
    OperationFailed,
    classify,
)
from ..interfaces.chain import ChainClient
from ..interfaces.price_oracle import PriceOracle
from ..interfaces.wallet import Wallet
from ..models import (
    EntityKind,
    OperationResult,
    OperationState,
    Present,
    ProvisionOutcome,
)
from ..protocols.lending import instructions
from ..protocols.lending.addresses import AddressDeriver, LendingAccounts
from ..protocols.lending.parser import decode_bank, decode_user
from ..protocols.lending.probe import AccountProbe
from .cache import BANKS, USERS, QueryCache
from .provisioner import ProvisionTarget, Provisioner
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)


class _Run:
    """State trail of one operation."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.states: list[OperationState] = [OperationState.START]
        self.stage = "start"
        self.provisioned: dict[EntityKind, ProvisionOutcome] = {}

    def advance(self, state: OperationState) -> None:
        logger.info("%s: %s -> %s", self.operation, self.states[-1].value, state.value)
        self.states.append(state)


class LendingOperations:
    """Deposit, borrow and account initialization against the lending program.

    Deposit and borrow walk Start -> BankEnsured -> UserEnsured ->
    PrimarySubmitted -> Succeeded, or end in Failed from any state. A failed
    step aborts everything after it; nothing already accepted is undone.
    """

    def __init__(
        self,
        config: AppConfig,
        client: ChainClient,
        wallet: Wallet,
        oracle: PriceOracle,
        cache: QueryCache,
    ) -> None:
        self._config = config
        self._wallet = wallet
        self._oracle = oracle
        self._cache = cache
        self._program_id = Pubkey.from_string(config.program.program_id)
        self._fallback_price_account = Pubkey.from_string(
            config.price_oracle.pyth.fallback_price_account
        )

        self._deriver = AddressDeriver(self._program_id)
        self._probe = AccountProbe(client)
        self._submitter = TransactionSubmitter(client, wallet)
        self._provisioner = Provisioner(self._probe, self._submitter)

    # ------------------------------------------------------------------
    # Provision targets
    # ------------------------------------------------------------------

    def _bank_target(
        self,
        accounts: LendingAccounts,
        liquidation_threshold: int | None = None,
        max_ltv: int | None = None,
    ) -> ProvisionTarget:
        program = self._config.program
        threshold = (
            program.default_liquidation_threshold
            if liquidation_threshold is None
            else liquidation_threshold
        )
        ltv = program.default_max_ltv if max_ltv is None else max_ltv

        # The treasury is created by the same instruction as its bank.
        def create() -> list[Instruction]:
            return [
                instructions.init_bank(
                    self._program_id,
                    self._wallet.pubkey,
                    accounts.mint,
                    accounts.bank,
                    accounts.treasury,
                    threshold,
                    ltv,
                )
            ]

        return ProvisionTarget(
            kind=EntityKind.BANK,
            address=accounts.bank,
            decoder=lambda address, data: decode_bank(
                address, data, self._deriver.treasury
            ),
            create=create,
        )

    def _user_target(self, user: Pubkey, usdc_address: Pubkey) -> ProvisionTarget:
        def create() -> list[Instruction]:
            return [
                instructions.init_user(
                    self._program_id, self._wallet.pubkey, user, usdc_address
                )
            ]

        return ProvisionTarget(
            kind=EntityKind.USER, address=user, decoder=decode_user, create=create
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_cancel(run: _Run, cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            run.advance(OperationState.FAILED)
            raise OperationCancelled(f"{run.operation} cancelled before {run.stage}")

    def _failure(self, run: _Run, error: LendingClientError) -> OperationFailed:
        classification = classify(error)
        run.advance(OperationState.FAILED)
        if classification.is_benign:
            logger.info("%s: %s", run.operation, classification.message)
            return AlreadyExistsError(run.operation, run.stage, classification)
        logger.error(
            "%s failed at %s (%s/%s): %s",
            run.operation,
            run.stage,
            classification.kind.value,
            classification.reason,
            classification.message,
        )
        return OperationFailed(run.operation, run.stage, classification)

    def _already_exists(self, run: _Run, what: str) -> AlreadyExistsError:
        run.advance(OperationState.FAILED)
        classification = Classification(
            ErrorKind.BENIGN_DUPLICATE, "already_exists", f"{what} already exists"
        )
        logger.info("%s: %s", run.operation, classification.message)
        return AlreadyExistsError(run.operation, run.stage, classification)

    def _invalidate(self, *kinds: str) -> None:
        for kind in kinds:
            self._cache.invalidate(kind)

    async def _resolve_price_account(self, feed_id: str) -> Pubkey:
        try:
            return await self._oracle.price_account(feed_id)
        except Exception as e:
            # Borrow still proceeds; the program's price checks then run
            # against the placeholder account.
            logger.warning(
                "Oracle resolution failed (%s); using placeholder price account %s, "
                "price-dependent risk checks may be unreliable",
                e,
                self._fallback_price_account,
            )
            return self._fallback_price_account

    # ------------------------------------------------------------------
    # Deposit / borrow
    # ------------------------------------------------------------------

    async def _lend(
        self,
        operation: str,
        mint: Pubkey,
        amount: int,
        primary: Callable[[LendingAccounts], Awaitable[Instruction]],
        cancel: asyncio.Event | None,
    ) -> OperationResult:
        run = _Run(operation)
        try:
            instructions.encode_amount(amount)
            accounts = self._deriver.accounts(mint, self._wallet.pubkey)

            run.stage = "provision_bank"
            self._check_cancel(run, cancel)
            run.provisioned[EntityKind.BANK] = await self._provisioner.ensure(
                self._bank_target(accounts)
            )
            run.advance(OperationState.BANK_ENSURED)

            run.stage = "provision_user"
            self._check_cancel(run, cancel)
            # The user's reference asset is the operation's own mint.
            run.provisioned[EntityKind.USER] = await self._provisioner.ensure(
                self._user_target(accounts.user, usdc_address=mint)
            )
            run.advance(OperationState.USER_ENSURED)

            run.stage = "primary"
            self._check_cancel(run, cancel)
            instruction = await primary(accounts)
            signature = await self._submitter.submit([instruction])
            run.advance(OperationState.PRIMARY_SUBMITTED)
        except OperationCancelled:
            raise
        except LendingClientError as e:
            raise self._failure(run, e) from e

        self._invalidate(BANKS, USERS)
        run.advance(OperationState.SUCCEEDED)
        return OperationResult(
            operation=operation,
            signature=signature,
            states=tuple(run.states),
            provisioned=dict(run.provisioned),
        )

    async def deposit(
        self, mint: Pubkey, amount: int, cancel: asyncio.Event | None = None
    ) -> OperationResult:
        """Deposit ``amount`` (smallest units) of ``mint``, creating accounts as needed."""
        logger.info("Deposit %d of %s", amount, mint)

        async def primary(accounts: LendingAccounts) -> Instruction:
            return instructions.deposit(self._program_id, accounts, amount)

        return await self._lend("deposit", mint, amount, primary, cancel)

    async def borrow(
        self,
        mint: Pubkey,
        amount: int,
        price_feed_id: str = BORROW_PRICE_FEED_ID,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        """Borrow ``amount`` (smallest units) of ``mint`` against deposited collateral."""
        logger.info("Borrow %d of %s", amount, mint)

        async def primary(accounts: LendingAccounts) -> Instruction:
            price_update = await self._resolve_price_account(price_feed_id)
            return instructions.borrow(self._program_id, accounts, amount, price_update)

        return await self._lend("borrow", mint, amount, primary, cancel)

    # ------------------------------------------------------------------
    # Explicit creation
    # ------------------------------------------------------------------

    async def initialize_user(self, usdc_address: Pubkey | None = None) -> OperationResult:
        """Create the caller's user account.

        An existing account is reported as ``AlreadyExistsError`` without
        submitting anything.
        """
        run = _Run("initialize_user")
        if usdc_address is None:
            usdc_address = Pubkey.from_string(
                self._config.asset(self._config.program.reference_asset).mint
            )
        try:
            user = self._deriver.user(self._wallet.pubkey)

            run.stage = "probe"
            if isinstance(await self._probe.probe(user, decode_user), Present):
                raise self._already_exists(run, "User account")

            run.stage = "primary"
            signature = await self._submitter.submit(
                self._user_target(user, usdc_address).create()
            )
            run.advance(OperationState.PRIMARY_SUBMITTED)
        except OperationFailed:
            raise
        except LendingClientError as e:
            raise self._failure(run, e) from e

        self._invalidate(USERS)
        run.advance(OperationState.SUCCEEDED)
        return OperationResult("initialize_user", signature, tuple(run.states))

    async def initialize_bank(
        self,
        mint: Pubkey,
        liquidation_threshold: int | None = None,
        max_ltv: int | None = None,
    ) -> OperationResult:
        """Create the bank (and its treasury) for ``mint``."""
        run = _Run("initialize_bank")
        try:
            accounts = self._deriver.accounts(mint, self._wallet.pubkey)
            target = self._bank_target(accounts, liquidation_threshold, max_ltv)

            run.stage = "probe"
            if isinstance(await self._probe.probe(target.address, target.decoder), Present):
                raise self._already_exists(run, "Bank")

            run.stage = "primary"
            signature = await self._submitter.submit(target.create())
            run.advance(OperationState.PRIMARY_SUBMITTED)
        except OperationFailed:
            raise
        except LendingClientError as e:
            raise self._failure(run, e) from e

        self._invalidate(BANKS)
        run.advance(OperationState.SUCCEEDED)
        return OperationResult("initialize_bank", signature, tuple(run.states))
