"""Command-line interface for the lending client."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from solders.pubkey import Pubkey

from .chains.solana import SolanaClient
from .config import BORROW_PRICE_FEED_ID, AppConfig, load_config
from .errors import (
    AlreadyExistsError,
    LendingClientError,
    OperationFailed,
    classify,
    user_message,
)
from .logging_setup import configure_logging
from .models import UserAccount
from .oracles import PythOracle
from .protocols.lending.addresses import AddressDeriver
from .services import LendingOperations, LendingQueries, ManualTokenFaucet, QueryCache
from .wallets import load_operator_capability, load_wallet

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "init-bank": "Bank",
    "init-user": "User account",
    "deposit": "Deposit",
    "borrow": "Borrow",
    "mint": "Mint",
}


def to_smallest_unit(amount: str, decimals: int) -> int:
    """Convert a decimal amount string to integer smallest units (rounded down)."""
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be a positive number, got {amount!r}")
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="lending-client",
        description="Deposit, borrow and manage accounts on the lending program",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    bank_parser = sub.add_parser("init-bank", help="Initialize the bank for an asset")
    bank_parser.add_argument("asset", help="Asset symbol, e.g. USDC")
    bank_parser.add_argument("--liquidation-threshold", type=int, default=None)
    bank_parser.add_argument("--max-ltv", type=int, default=None)

    user_parser = sub.add_parser("init-user", help="Initialize your user account")
    user_parser.add_argument(
        "--reference-asset",
        default=None,
        help="Asset recorded as the account's reference (default: from config)",
    )

    for name, text in (("deposit", "Deposit an asset"), ("borrow", "Borrow an asset")):
        op_parser = sub.add_parser(name, help=text)
        op_parser.add_argument("asset", help="Asset symbol, e.g. SOL")
        op_parser.add_argument("amount", help="Amount in whole tokens, e.g. 1.5")
        if name == "borrow":
            op_parser.add_argument(
                "--feed-id", default=None, help="Pyth price feed id (hex)"
            )

    mint_parser = sub.add_parser("mint", help="Mint test tokens (test networks only)")
    mint_parser.add_argument("asset", help="Asset symbol")
    mint_parser.add_argument("amount", help="Amount in whole tokens")

    sub.add_parser("banks", help="List banks")
    sub.add_parser("account", help="Show your user account")

    return parser


def _mint(config: AppConfig, symbol: str) -> Pubkey:
    return Pubkey.from_string(config.asset(symbol).mint)


def _print_account(config: AppConfig, user: UserAccount, prices: dict[str, float]) -> None:
    sol = config.program.assets.get("SOL")
    usdc = config.program.assets.get("USDC")
    sol_div = 10 ** (sol.decimals if sol else 9)
    usdc_div = 10 ** (usdc.decimals if usdc else 6)

    deposited = user.deposited_sol / sol_div * prices.get("SOL", 0.0) + (
        user.deposited_usdc / usdc_div * prices.get("USDC", 0.0)
    )
    borrowed = user.borrowed_sol / sol_div * prices.get("SOL", 0.0) + (
        user.borrowed_usdc / usdc_div * prices.get("USDC", 0.0)
    )

    print(f"User account:   {user.address}")
    print(f"Deposited SOL:  {user.deposited_sol / sol_div:.6f}")
    print(f"Borrowed SOL:   {user.borrowed_sol / sol_div:.6f}")
    print(f"Deposited USDC: {user.deposited_usdc / usdc_div:.2f}")
    print(f"Borrowed USDC:  {user.borrowed_usdc / usdc_div:.2f}")
    print(f"Health factor:  {user.health_factor}")
    if prices:
        print(f"Deposits (USD): ${deposited:,.2f}")
        print(f"Borrows (USD):  ${borrowed:,.2f}")


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
        client = SolanaClient(config.cluster)
        wallet = load_wallet(config.wallet)
        oracle = PythOracle(config.price_oracle.pyth)
        cache = QueryCache()
        deriver = AddressDeriver(Pubkey.from_string(config.program.program_id))
        queries = LendingQueries(client, deriver, cache, config.cluster.name)
        operations = LendingOperations(config, client, wallet, oracle, cache)

        if args.command == "init-bank":
            result = await operations.initialize_bank(
                _mint(config, args.asset), args.liquidation_threshold, args.max_ltv
            )
        elif args.command == "init-user":
            reference = (
                _mint(config, args.reference_asset) if args.reference_asset else None
            )
            result = await operations.initialize_user(reference)
        elif args.command == "deposit":
            amount = to_smallest_unit(args.amount, config.asset(args.asset).decimals)
            result = await operations.deposit(_mint(config, args.asset), amount)
        elif args.command == "borrow":
            amount = to_smallest_unit(args.amount, config.asset(args.asset).decimals)
            feed_id = args.feed_id or BORROW_PRICE_FEED_ID
            result = await operations.borrow(_mint(config, args.asset), amount, feed_id)
        elif args.command == "mint":
            operator = load_operator_capability(config)
            if operator is None:
                logger.error("The faucet is disabled in this configuration")
                return 1
            amount = to_smallest_unit(args.amount, config.asset(args.asset).decimals)
            result = await ManualTokenFaucet(client, wallet, operator).mint(
                _mint(config, args.asset), amount
            )
        elif args.command == "banks":
            for bank in await queries.banks():
                print(
                    f"{bank.address}  mint={bank.mint_address}  "
                    f"deposits={bank.total_deposits}  borrowed={bank.total_borrowed}  "
                    f"liq={bank.liquidation_threshold}%  max_ltv={bank.max_ltv}%"
                )
            return 0
        elif args.command == "account":
            user = await queries.user(wallet.pubkey)
            if user is None:
                print("No user account yet; run init-user or make a deposit.")
                return 0
            _print_account(config, user, await oracle.fetch_prices(["SOL", "USDC"]))
            return 0
        else:
            build_parser().print_help()
            return 1
    except AlreadyExistsError as e:
        logger.info(user_message(e.classification, _SUBJECTS.get(args.command, "")))
        return 0
    except OperationFailed as e:
        logger.error(user_message(e.classification, _SUBJECTS.get(args.command, "")))
        return 1
    except LendingClientError as e:
        logger.error(user_message(classify(e), _SUBJECTS.get(args.command, "")))
        return 1
    except ValueError as e:
        logger.error("%s", e)
        return 1

    print(f"Transaction signature: {result.signature}")
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
