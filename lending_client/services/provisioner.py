"""Idempotent create-if-absent for lending program accounts."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..errors import LendingClientError, classify
from ..models import EntityKind, Present, ProvisionOutcome
from ..protocols.lending.probe import AccountProbe
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionTarget:
    """An account that must exist, plus how to decode and how to create it."""

    kind: EntityKind
    address: Pubkey
    decoder: Callable[[Pubkey, bytes], Any]
    create: Callable[[], list[Instruction]]


class Provisioner:
    """Ensure an account exists with at most one creation attempt per call.

    Uniqueness is arbitrated by the ledger alone: when two callers race, the
    loser's create is rejected as "already in use" and reported as RACED.
    Every other failure propagates to the caller unchanged.
    """

    def __init__(self, probe: AccountProbe, submitter: TransactionSubmitter) -> None:
        self._probe = probe
        self._submitter = submitter

    async def ensure(self, target: ProvisionTarget) -> ProvisionOutcome:
        result = await self._probe.probe(target.address, target.decoder)
        if isinstance(result, Present):
            logger.info("%s %s already exists", target.kind.value, target.address)
            return ProvisionOutcome.EXISTED

        logger.info("%s %s is absent, creating it", target.kind.value, target.address)
        try:
            signature = await self._submitter.submit(target.create())
        except LendingClientError as e:
            if classify(e).is_benign:
                logger.info(
                    "%s %s was created concurrently, continuing",
                    target.kind.value,
                    target.address,
                )
                return ProvisionOutcome.RACED
            raise

        logger.info("%s %s created (%s)", target.kind.value, target.address, signature)
        return ProvisionOutcome.CREATED
