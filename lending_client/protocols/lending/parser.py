"""Pure decoding functions for lending program accounts — no I/O."""
from __future__ import annotations

import hashlib
import struct
from collections.abc import Callable

from solders.pubkey import Pubkey

from ...errors import AccountDecodeError
from ...models import Bank, UserAccount

DISCRIMINATOR_LEN = 8

# Anchor account bodies (little-endian, after the 8-byte discriminator).
_BANK_LAYOUT = struct.Struct("<32s32sQQQQQQQQqQ")
_USER_LAYOUT = struct.Struct("<32sQQQQQQQQ32sQq")


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<Name>")[:8]."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_LEN]


BANK_DISCRIMINATOR = account_discriminator("Bank")
USER_DISCRIMINATOR = account_discriminator("User")


def _body(address: Pubkey, data: bytes, discriminator: bytes, layout: struct.Struct) -> tuple:
    if len(data) < DISCRIMINATOR_LEN:
        raise AccountDecodeError(str(address), f"{len(data)} bytes is too short")
    if data[:DISCRIMINATOR_LEN] != discriminator:
        raise AccountDecodeError(
            str(address), f"unexpected discriminator {data[:DISCRIMINATOR_LEN].hex()}"
        )
    end = DISCRIMINATOR_LEN + layout.size
    if len(data) < end:
        raise AccountDecodeError(
            str(address), f"expected at least {end} bytes, got {len(data)}"
        )
    return layout.unpack(data[DISCRIMINATOR_LEN:end])


def decode_bank(
    address: Pubkey, data: bytes, treasury_of: Callable[[Pubkey], Pubkey]
) -> Bank:
    """Decode a Bank; ``treasury_of`` maps its mint to the treasury address."""
    (
        authority,
        mint_address,
        total_deposits,
        total_deposit_shares,
        total_borrowed,
        total_borrowed_shares,
        liquidation_threshold,
        liquidation_bonus,
        liquidation_close_factor,
        max_ltv,
        last_updated,
        interest_rate,
    ) = _body(address, data, BANK_DISCRIMINATOR, _BANK_LAYOUT)
    return Bank(
        address=address,
        authority=Pubkey.from_bytes(authority),
        mint_address=Pubkey.from_bytes(mint_address),
        total_deposits=total_deposits,
        total_deposit_shares=total_deposit_shares,
        total_borrowed=total_borrowed,
        total_borrowed_shares=total_borrowed_shares,
        liquidation_threshold=liquidation_threshold,
        liquidation_bonus=liquidation_bonus,
        liquidation_close_factor=liquidation_close_factor,
        max_ltv=max_ltv,
        last_updated=last_updated,
        interest_rate=interest_rate,
        treasury=treasury_of(Pubkey.from_bytes(mint_address)),
    )


def decode_user(address: Pubkey, data: bytes) -> UserAccount:
    (
        owner,
        deposited_sol,
        deposited_sol_shares,
        borrowed_sol,
        borrowed_sol_shares,
        deposited_usdc,
        deposited_usdc_shares,
        borrowed_usdc,
        borrowed_usdc_shares,
        usdc_address,
        health_factor,
        last_updated,
    ) = _body(address, data, USER_DISCRIMINATOR, _USER_LAYOUT)
    return UserAccount(
        address=address,
        owner=Pubkey.from_bytes(owner),
        deposited_sol=deposited_sol,
        deposited_sol_shares=deposited_sol_shares,
        borrowed_sol=borrowed_sol,
        borrowed_sol_shares=borrowed_sol_shares,
        deposited_usdc=deposited_usdc,
        deposited_usdc_shares=deposited_usdc_shares,
        borrowed_usdc=borrowed_usdc,
        borrowed_usdc_shares=borrowed_usdc_shares,
        usdc_address=Pubkey.from_bytes(usdc_address),
        health_factor=health_factor,
        last_updated=last_updated,
    )
