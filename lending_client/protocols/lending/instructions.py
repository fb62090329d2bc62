"""Instruction builders for the lending program — no I/O.

Instruction data is the Anchor discriminator sha256("global:<name>")[:8]
followed by Borsh-encoded arguments.
"""
from __future__ import annotations

import hashlib
import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from ...errors import ValidationError
from .addresses import LendingAccounts

U64_MAX = 2**64 - 1


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


INIT_BANK = instruction_discriminator("init_bank")
INIT_USER = instruction_discriminator("init_user")
DEPOSIT = instruction_discriminator("deposit")
BORROW = instruction_discriminator("borrow")


def _u64(value: int, name: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= U64_MAX:
        raise ValidationError(f"{name} out of range for u64: {value}")
    return struct.pack("<Q", value)


def encode_amount(value: int) -> bytes:
    encoded = _u64(value, "amount")
    if value == 0:
        raise ValidationError("amount must be greater than zero")
    return encoded


def _signer(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=True)


def _writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def _readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def init_bank(
    program_id: Pubkey,
    signer: Pubkey,
    mint: Pubkey,
    bank: Pubkey,
    treasury: Pubkey,
    liquidation_threshold: int,
    max_ltv: int,
) -> Instruction:
    """Create a Bank and its treasury token account in one instruction."""
    data = (
        INIT_BANK
        + _u64(liquidation_threshold, "liquidation_threshold")
        + _u64(max_ltv, "max_ltv")
    )
    accounts = [
        _signer(signer),
        _readonly(mint),
        _writable(bank),
        _writable(treasury),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    return Instruction(program_id, data, accounts)


def init_user(
    program_id: Pubkey, signer: Pubkey, user: Pubkey, usdc_address: Pubkey
) -> Instruction:
    data = INIT_USER + bytes(usdc_address)
    accounts = [
        _signer(signer),
        _writable(user),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    return Instruction(program_id, data, accounts)


def deposit(program_id: Pubkey, accounts: LendingAccounts, amount: int) -> Instruction:
    data = DEPOSIT + encode_amount(amount)
    metas = [
        _signer(accounts.owner),
        _readonly(accounts.mint),
        _writable(accounts.bank),
        _writable(accounts.treasury),
        _writable(accounts.user),
        _writable(accounts.user_token_account),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    return Instruction(program_id, data, metas)


def borrow(
    program_id: Pubkey, accounts: LendingAccounts, amount: int, price_update: Pubkey
) -> Instruction:
    data = BORROW + encode_amount(amount)
    metas = [
        _signer(accounts.owner),
        _readonly(accounts.mint),
        _writable(accounts.bank),
        _writable(accounts.treasury),
        _writable(accounts.user),
        _writable(accounts.user_token_account),
        _readonly(price_update),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    return Instruction(program_id, data, metas)
