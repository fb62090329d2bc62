"""Deterministic address derivation for lending program accounts — no I/O."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from ...errors import AddressDerivationError
from ...models import EntityKind

TREASURY_SEED = b"treasury"
MAX_SEED_LEN = 32
MAX_SEEDS = 16


@dataclass(frozen=True)
class LendingAccounts:
    """Every address a deposit or borrow touches for one (mint, owner) pair."""

    mint: Pubkey
    owner: Pubkey
    bank: Pubkey
    treasury: Pubkey
    user: Pubkey
    user_token_account: Pubkey


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise AddressDerivationError(f"Too many seeds: {len(seeds)} > {MAX_SEEDS}")
    for i, seed in enumerate(seeds):
        if not isinstance(seed, (bytes, bytearray)):
            raise AddressDerivationError(
                f"Seed {i} must be bytes, got {type(seed).__name__}"
            )
        if len(seed) > MAX_SEED_LEN:
            raise AddressDerivationError(
                f"Seed {i} is {len(seed)} bytes, maximum is {MAX_SEED_LEN}"
            )


class AddressDeriver:
    """Map (entity kind, seed inputs) to a program-derived address.

    Bank      -> [asset mint]
    Treasury  -> [b"treasury", asset mint]
    User      -> [caller identity]
    """

    def __init__(self, program_id: Pubkey) -> None:
        self.program_id = program_id

    def derive(self, kind: EntityKind, seeds: Sequence[bytes]) -> Pubkey:
        if len(seeds) != 1:
            raise AddressDerivationError(
                f"{kind.value} address takes exactly one seed, got {len(seeds)}"
            )
        full = [TREASURY_SEED, *seeds] if kind is EntityKind.TREASURY else list(seeds)
        _check_seeds(full)
        address, _bump = Pubkey.find_program_address(
            [bytes(s) for s in full], self.program_id
        )
        return address

    def bank(self, mint: Pubkey) -> Pubkey:
        return self.derive(EntityKind.BANK, [bytes(mint)])

    def treasury(self, mint: Pubkey) -> Pubkey:
        return self.derive(EntityKind.TREASURY, [bytes(mint)])

    def user(self, owner: Pubkey) -> Pubkey:
        return self.derive(EntityKind.USER, [bytes(owner)])

    def accounts(self, mint: Pubkey, owner: Pubkey) -> LendingAccounts:
        return LendingAccounts(
            mint=mint,
            owner=owner,
            bank=self.bank(mint),
            treasury=self.treasury(mint),
            user=self.user(owner),
            user_token_account=token_account(owner, mint),
        )


def token_account(owner: Pubkey, mint: Pubkey) -> Pubkey:
    """Associated token account holding ``mint`` for ``owner``."""
    return get_associated_token_address(owner, mint)
