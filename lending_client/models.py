"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union

from solders.pubkey import Pubkey
from solders.signature import Signature

T = TypeVar("T")


class EntityKind(Enum):
    BANK = "bank"
    TREASURY = "treasury"
    USER = "user"


@dataclass(frozen=True)
class Bank:
    """Decoded per-asset Bank account."""

    address: Pubkey
    authority: Pubkey
    mint_address: Pubkey
    total_deposits: int
    total_deposit_shares: int
    total_borrowed: int
    total_borrowed_shares: int
    liquidation_threshold: int
    liquidation_bonus: int
    liquidation_close_factor: int
    max_ltv: int
    last_updated: int
    interest_rate: int
    treasury: Pubkey


@dataclass(frozen=True)
class UserAccount:
    """Decoded per-identity user account."""

    address: Pubkey
    owner: Pubkey
    deposited_sol: int
    deposited_sol_shares: int
    borrowed_sol: int
    borrowed_sol_shares: int
    deposited_usdc: int
    deposited_usdc_shares: int
    borrowed_usdc: int
    borrowed_usdc_shares: int
    usdc_address: Pubkey
    health_factor: int
    last_updated: int


# ---------------------------------------------------------------------------
# Probe results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Present(Generic[T]):
    address: Pubkey
    data: T


@dataclass(frozen=True)
class Absent:
    address: Pubkey


ProbeResult = Union[Present[T], Absent]


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class ProvisionOutcome(Enum):
    EXISTED = "existed"
    CREATED = "created"
    RACED = "raced"


class OperationState(Enum):
    START = "start"
    BANK_ENSURED = "bank_ensured"
    USER_ENSURED = "user_ensured"
    PRIMARY_SUBMITTED = "primary_submitted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """Terminal record of a successful operation."""

    operation: str
    signature: Signature
    states: tuple[OperationState, ...] = ()
    provisioned: dict[EntityKind, ProvisionOutcome] = field(default_factory=dict)
